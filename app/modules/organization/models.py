# Supabase table: workspaces
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

workspaces:
- id: uuid (primary key)
- name: text (not null)
- description: text (nullable)
- plan_type: text (not null, default: 'free')
- is_active: boolean (not null, default: true) - inactive workspaces reject all role-gated routes
- settings: jsonb (default: '{}') - timezone, currency, workingDays, workingHours, features
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
