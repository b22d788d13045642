# Supabase tables: workspace_members, workspace_invitations, user_profiles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

workspace_members:
- id: uuid (primary key)
- workspace_id: uuid (foreign key to workspaces.id, not null)
- user_id: uuid (foreign key to auth.users.id, not null)
- role: text (not null, default: 'member') - values: owner, admin, member, viewer
- is_active: boolean (not null, default: true) - removal deactivates, rows are never deleted
- created_at: timestamp (default: now()) - joined at
- updated_at: timestamp (nullable)
- unique constraint on (workspace_id, user_id)

workspace_invitations:
- id: uuid (primary key)
- workspace_id: uuid (foreign key to workspaces.id, not null)
- email: text (not null, lower case)
- role: text (not null) - role granted on acceptance
- token: text (unique, not null) - opaque, URL safe
- invited_by: uuid (foreign key to auth.users.id)
- first_name: text (nullable)
- last_name: text (nullable)
- custom_message: text (nullable)
- status: text (not null, default: 'pending') - values: pending, accepted
- expires_at: timestamp (not null)
- accepted_at: timestamp (nullable)
- created_at: timestamp (default: now())

user_profiles (read here for email and display name):
- id: uuid (primary key, = auth.users.id)
- email: text
- full_name: text
"""
