# Supabase table: eod_reports
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

eod_reports:
- id: uuid (primary key)
- workspace_id: uuid (foreign key to workspaces.id, not null)
- user_id: uuid (foreign key to auth.users.id, not null) - author
- report_date: date (not null)
- calls_made: integer (not null, default: 0)
- appointments: integer (not null, default: 0)
- sales: integer (not null, default: 0)
- revenue: numeric (not null, default: 0)
- notes: text (nullable)
- mood: text (nullable) - values: excellent, good, average, poor, terrible
- challenges: text (nullable)
- wins: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- unique constraint on (user_id, workspace_id, report_date)

Author details come from user_profiles (id, email, full_name).
"""
