# Supabase table: products
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

products:
- id: uuid (primary key)
- workspace_id: uuid (foreign key to workspaces.id, not null)
- name: text (not null)
- description: text (nullable)
- price: numeric (not null, default: 0)
- currency: text (not null, default: 'USD') - ISO 4217 code
- category: text (nullable)
- is_active: boolean (not null, default: true) - false once deleted (soft delete)
- metadata: jsonb (default: '{}')
- created_by: uuid (foreign key to auth.users.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
