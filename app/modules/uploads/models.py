# Supabase Storage bucket: avatars
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase Storage layout:

avatars (public bucket):
- <user id>/<epoch milliseconds>.<ext> - JPEG, PNG, WebP or GIF, at most 5 MiB

The public URL of the current avatar is stored in user_profiles.avatar_url.
"""
