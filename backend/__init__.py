# backend -- FastAPI server + SQLAlchemy models for the incubator admin API
#
# Modules:
#   app             -- FastAPI application, exception handlers, lifespan
#   database        -- PostgreSQL / SQLite async engine
#   models          -- SQLAlchemy ORM models (startups, nested records, users, sessions)
#   schemas         -- Pydantic request/response schemas
#   errors          -- error taxonomy rendered as {"message": ...}
#   policy          -- role -> capability gate
#   auth            -- bearer token dependency
#   security        -- bcrypt hashing, session tokens
#   setup_admin     -- CLI: create the admin account
#   import_startups -- CLI: bulk import from CSV / JSON
#   services/       -- business operations (accounts, guests, startups)
#   routes/         -- API endpoints (auth, startups, guests)
