"""Database schema DDL for geocode jobs."""

CUSTOMER_JOBS_TABLE_DDL = """
CREATE TABLE customer_jobs (
  id           UUID PRIMARY KEY,
  user_id      TEXT NOT NULL,
  address      TEXT NOT NULL CHECK (length(btrim(address)) > 0),
  birth        TEXT,
  sex          TEXT CHECK (sex IN ('male', 'female')),

  status       TEXT NOT NULL CHECK (status IN ('queued', 'processing', 'done', 'failed')),
  attempts     INT NOT NULL DEFAULT 0,
  last_error   TEXT,

  created_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
  updated_at   TIMESTAMPTZ NOT NULL DEFAULT now()
);

-- Oldest-first lookup of claimable jobs
CREATE INDEX idx_customer_jobs_queued_created
ON customer_jobs (created_at, id)
WHERE status = 'queued';

-- Monthly quota window count
CREATE INDEX idx_customer_jobs_user_created
ON customer_jobs (user_id, created_at);

-- Stale processing sweep
CREATE INDEX idx_customer_jobs_processing_updated
ON customer_jobs (updated_at)
WHERE status = 'processing';
"""

CUSTOMER_TABLE_DDL = """
CREATE TABLE customer (
  id          BIGSERIAL PRIMARY KEY,
  job_id      UUID NOT NULL UNIQUE REFERENCES customer_jobs (id),
  user_id     TEXT NOT NULL,
  address     TEXT NOT NULL,
  birth       TEXT,
  sex         TEXT NOT NULL CHECK (sex IN ('male', 'female')),
  lat         DOUBLE PRECISION NOT NULL,
  lng         DOUBLE PRECISION NOT NULL,
  created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX idx_customer_user
ON customer (user_id);
"""

SCHEMA_DDL = CUSTOMER_JOBS_TABLE_DDL + CUSTOMER_TABLE_DDL
