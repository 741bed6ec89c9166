"""Batch jobs of the lead CRM.

  intake: feeds -> customers + lead sources
  targeting: customers -> today_call_<agent> lists
  outcomes: edited list entries -> call logs, appointments, status changes
  kpi: call logs + appointments -> kpi_daily, kpi_by_list
"""
