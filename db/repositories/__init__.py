"""Repository layer for the lead CRM.

Provides read/write helpers for the canonical entities and job outputs:
- tables: table registry, get_table, append_rows, replace_rows, update_row,
          find_rows_where, next_seq
- customers: list_ordered, get, insert, apply_candidate, set_status
- lead_sources: list_ordered, list_for_customer, primary_for_customer, insert, refresh_dates
- call_logs: list_ordered, count_for_customer, insert, insert_appointment,
             list_appointments_for_customer
- observability: log_job_run
"""
