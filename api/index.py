"""
Vercel serverless entry point for the BotVault waitlist.

Vercel's serverless filesystem is read-only except for /tmp, so the SQLite
backend does not persist between invocations there. Set
DATABASE_BACKEND=supabase with SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY in
the Vercel dashboard for production. DATABASE_PATH=/tmp/waitlist.db is only
suitable for trying the page out.
"""

import sys
import os

# Make the project root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app, init_db

if app.config.get('DATABASE_BACKEND') == 'sqlite':
    init_db()

# The @vercel/python runtime calls app(environ, start_response) directly
