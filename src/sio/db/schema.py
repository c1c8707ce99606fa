"""
PostgreSQL schema bootstrap for the triage desk.

Idempotent: safe to run at every startup.
"""

import structlog

from sio.triage.colors import DEFAULT_COLORS

logger = structlog.get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS triage_colors (
    code VARCHAR(20) PRIMARY KEY,
    hex_value VARCHAR(7) NOT NULL,
    display_name VARCHAR(50) NOT NULL,
    priority INTEGER NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS patients (
    id SERIAL PRIMARY KEY,
    fiscal_code VARCHAR(16) NOT NULL,
    first_name VARCHAR(100) NOT NULL,
    last_name VARCHAR(100) NOT NULL,
    birth_date DATE NOT NULL,
    street VARCHAR(255),
    street_number VARCHAR(20),
    city VARCHAR(100),
    province VARCHAR(5),
    CONSTRAINT patients_fiscal_code_key UNIQUE (fiscal_code)
);

CREATE TABLE IF NOT EXISTS admissions (
    id SERIAL PRIMARY KEY,
    patient_id INTEGER NOT NULL,
    bracelet VARCHAR(20) NOT NULL,
    admitted_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    status VARCHAR(3) NOT NULL CHECK (status IN ('ATT', 'VIS', 'OBI', 'RIC', 'DIM')),
    pathology_code VARCHAR(10),
    color_code VARCHAR(20),
    arrival_mode VARCHAR(20),
    CONSTRAINT admissions_bracelet_key UNIQUE (bracelet),
    CONSTRAINT admissions_patient_id_fkey FOREIGN KEY (patient_id) REFERENCES patients (id)
);

CREATE INDEX IF NOT EXISTS admissions_status_idx ON admissions (status);
"""

SEED_COLOR_SQL = """
INSERT INTO triage_colors (code, hex_value, display_name, priority)
VALUES ($1, $2, $3, $4)
ON CONFLICT (code) DO NOTHING
"""


async def bootstrap_schema(pool, schema_name: str) -> None:
    """Create the schema, tables and the standard color scale."""
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"')
            await conn.execute(f'SET LOCAL search_path TO "{schema_name}", public')
            await conn.execute(SCHEMA_SQL)
            await conn.executemany(
                SEED_COLOR_SQL,
                [(c.code, c.hex_value, c.display_name, c.priority) for c in DEFAULT_COLORS],
            )
    logger.info("Schema ready", schema=schema_name)
