"""Database table name constants and type references."""

# Table names shared by REST and Supabase queries
PROFILES = "profiles"
POSTS = "posts"
STARTUPS = "startups"
COMMENTS = "comments"
LIKES = "likes"
PENDING_TOKENS = "pending_tokens"

PUBLIC_TABLES = (PROFILES, STARTUPS, POSTS, LIKES, COMMENTS)

# Stored procedure returning posts joined with author and per-user like status
RPC_POSTS_WITH_DETAILS = "get_posts_with_details"

# Constraint / error codes reported by the hosted database
SLUG_CONSTRAINT = "startups_slug_key"
UNIQUE_VIOLATION = "23505"

# Column lists shared by the startup queries
STARTUP_COLUMNS = (
    "id,name,slug,description,website_url,logo_url,industry,stage,founded_date,location,"
    "team_size,funding_raised,target_market,estimated_timeline,looking_for,launch_date,"
    "is_public,created_at,updated_at,user_id"
)
STARTUP_SUMMARY_COLUMNS = "id,name,description,slug,stage,industry,target_market"
PROFILE_COLUMNS = "id,first_name,last_name,username,avatar_url"
COMMENT_COLUMNS = (
    "id,post_id,user_id,content,created_at,profiles!user_id(id,first_name,last_name,username,avatar_url)"
)

# Pending login token status values
TOKEN_STATUS_COMPLETE = "complete"
TOKEN_STATUS_PENDING = "pending"
