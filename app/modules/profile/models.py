# Supabase table: user_profiles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, = auth.users.id)
- email: text
- first_name: text
- last_name: text
- full_name: text
- phone: text (nullable)
- timezone: text (nullable)
- bio: text (nullable)
- avatar_url: text (nullable) - public URL in the avatars storage bucket
- preferences: jsonb (default: '{}') - emailNotifications, pushNotifications, weeklyReports
- updated_at: timestamp (nullable)

Name changes are mirrored into the auth user's user_metadata
(full_name, first_name, last_name) through the admin API.
"""
