"""Logical SQL layout of the enrichment tables.

The runtime stores use the key-value backends in enrichment.storage; these
statements document the equivalent relational layout and its uniqueness rule
for external provisioning tools. Nothing in the engine executes them.
"""

# Enrichment records - one row per request, audit trail of its lifecycle
ENRICHMENT_RECORDS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS enrichment_records (
    request_id VARCHAR(36) PRIMARY KEY,
    original_request TEXT NOT NULL,  -- versioned JSON envelope
    provider_response TEXT,  -- versioned JSON envelope, optional
    status VARCHAR(20) NOT NULL CHECK (status IN ('PENDING', 'SUCCESS', 'FAILED')),
    error_message TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_enrichment_records_status ON enrichment_records(status, created_at DESC);
"""

# Merchant cache - append-only, one row per (description, merchant_name)
MERCHANT_CACHE_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS merchant_cache (
    merchant_id VARCHAR(36) PRIMARY KEY,
    description VARCHAR(500) NOT NULL,
    merchant_name VARCHAR(255) NOT NULL DEFAULT '',
    provider_enrichment TEXT,  -- versioned JSON envelope
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT uq_merchant_desc_name UNIQUE (description, merchant_name)
);
"""

ALL_SCHEMAS = (ENRICHMENT_RECORDS_TABLE_SCHEMA, MERCHANT_CACHE_TABLE_SCHEMA)


def _statements(schema: str):
    return [s.strip() for s in schema.split(";") if s.strip()]


def create_all_tables(cursor):
    """
    Execute all CREATE TABLE / CREATE INDEX statements.

    Args:
        cursor: DB-API cursor (one statement per execute call)
    """
    for schema in ALL_SCHEMAS:
        for statement in _statements(schema):
            cursor.execute(statement)
