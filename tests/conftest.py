import os

os.environ.setdefault("GENFIN_BASE_URL", "https://genfin.example/api")
os.environ.setdefault("GENFIN_USERNAME", "relay-user")
os.environ.setdefault("GENFIN_PASSWORD", "relay-pass")
os.environ.setdefault("GENFIN_AFFILIATE_NUMBER", "AFF0905")
os.environ.setdefault("GENFIN_EXT_LINK_ID", "ext-link-1")
os.environ.setdefault("SUPABASE_URL", "https://supabase.example")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
