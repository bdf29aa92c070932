#!/usr/bin/env python3
"""Create the audit tables used by Lead Relay."""

import os
import psycopg2
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

SQL = """
-- 1. webhook_logs: one row per relayed submission
CREATE TABLE IF NOT EXISTS webhook_logs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    payload JSONB NOT NULL,
    response JSONB,
    status_code INTEGER,
    ip_address VARCHAR(64),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_webhook_logs_created_at ON webhook_logs(created_at);
CREATE INDEX IF NOT EXISTS idx_webhook_logs_ip_address ON webhook_logs(ip_address);

-- 2. lead_payloads: normalized lead fields for each webhook_logs row
CREATE TABLE IF NOT EXISTS lead_payloads (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    webhook_log_id UUID REFERENCES webhook_logs(id) ON DELETE CASCADE,
    ip_address VARCHAR(64) NOT NULL,
    loan_amount TEXT NOT NULL,
    trade_history BOOLEAN NOT NULL,
    turnover_history BOOLEAN NOT NULL,
    company_trading_name VARCHAR(255) NOT NULL,
    nature_of_business VARCHAR(255) NOT NULL,
    loan_purpose VARCHAR(255) NOT NULL,
    premises VARCHAR(100) NOT NULL,
    number_employees VARCHAR(50) NOT NULL,
    website_address VARCHAR(255) NOT NULL,
    hear_about_us VARCHAR(255) NOT NULL,
    first_name VARCHAR(100) NOT NULL,
    last_name VARCHAR(100) NOT NULL,
    email_address VARCHAR(255) NOT NULL,
    primary_contact_number VARCHAR(50) NOT NULL,
    product_selection VARCHAR(50) NOT NULL,
    source VARCHAR(50) NOT NULL,
    company_reg_number VARCHAR(50) NOT NULL,
    affiliate_number VARCHAR(50) NOT NULL,
    auto_email BOOLEAN NOT NULL,
    confirm_consent BOOLEAN NOT NULL,
    ext_link_id VARCHAR(100) NOT NULL,
    genfin_representative VARCHAR(100),
    comments TEXT,
    additional_contact_number VARCHAR(50),
    utm_source VARCHAR(255),
    utm_campaign VARCHAR(255),
    utm_medium VARCHAR(255),
    utm_content VARCHAR(255),
    gc_lid VARCHAR(255),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_lead_payloads_webhook_log_id ON lead_payloads(webhook_log_id);
"""

def main():
    if not DATABASE_URL:
        raise SystemExit("DATABASE_URL is not set")

    print("Connecting to database...")
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    cur = conn.cursor()

    print("Creating tables...")
    cur.execute(SQL)

    cur.execute(
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = 'public' AND table_name IN ('webhook_logs', 'lead_payloads') "
        "ORDER BY table_name;"
    )
    tables = cur.fetchall()
    print(f"\nTables present: {[t[0] for t in tables]}")

    cur.close()
    conn.close()
    print("\nDone!")

if __name__ == "__main__":
    main()
