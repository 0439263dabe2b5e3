# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets. This file should contain only safe overrides.
Only the sync switches below are read from here.
"""

# Example: keep tasks per device/identity instead of one shared list
# USE_IDENTITY_SCOPE = True

# Example: fail loudly instead of saving offline
# ENABLE_LOCAL_FALLBACK = False

# Example: no live subscription, refresh with /refresh
# PREFER_PUSH = False
