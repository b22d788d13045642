# Supabase Auth
# This module uses Supabase's built-in authentication system (GoTrue).
# Registration additionally writes: workspaces, workspace_members, user_profiles
# (see the organization, team and profile modules for those tables).

"""
Supabase Auth provides:
- auth.sign_up() - Register new users (full_name, first_name, last_name in user_metadata)
- auth.sign_in_with_password() - Authenticate users (on a fresh client per call)
- auth.get_user(jwt) - Validate a session token
- auth.admin.sign_out(jwt) - Revoke a session (service role)
- auth.admin.update_user_by_id() - Update user_metadata (service role)

Registering creates, in order: the auth user, a workspace on the free plan,
an owner membership for the new user, and their user_profiles row.
"""
