"""Print the Supabase schema for ExamDesk (exams, registrations, attempts)."""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

# SQL schema
SCHEMA_SQL = """
-- Exam records with embedded question bank (raw, loosely typed JSON)
CREATE TABLE IF NOT EXISTS exams (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL,
    subject TEXT NOT NULL,
    date TIMESTAMPTZ,
    duration TEXT,
    description TEXT,
    download_link TEXT DEFAULT '',
    questions JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Candidate registrations (insert-only, title snapshot)
CREATE TABLE IF NOT EXISTS registrations (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    exam_id UUID NOT NULL,
    exam_title TEXT DEFAULT '',
    full_name TEXT NOT NULL,
    email TEXT NOT NULL,
    phone TEXT DEFAULT '',
    registered_at TIMESTAMPTZ DEFAULT NOW()
);

-- Submitted online tests (insert-only, per-question answer log in answers)
CREATE TABLE IF NOT EXISTS attempts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    exam_id UUID NOT NULL,
    exam_title TEXT DEFAULT '',
    candidate_name TEXT NOT NULL,
    candidate_email TEXT NOT NULL,
    score NUMERIC NOT NULL,
    total NUMERIC NOT NULL,
    answers JSONB NOT NULL DEFAULT '[]'::jsonb,
    submitted_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_exams_date ON exams(date DESC);
CREATE INDEX IF NOT EXISTS idx_attempts_exam_id ON attempts(exam_id);
CREATE INDEX IF NOT EXISTS idx_registrations_exam_id ON registrations(exam_id);

-- Anyone may read exams and insert registrations/attempts; only signed-in admins write exams
ALTER TABLE exams ENABLE ROW LEVEL SECURITY;
ALTER TABLE registrations ENABLE ROW LEVEL SECURITY;
ALTER TABLE attempts ENABLE ROW LEVEL SECURITY;
CREATE POLICY exams_read ON exams FOR SELECT USING (true);
CREATE POLICY exams_admin_write ON exams FOR ALL TO authenticated USING (true) WITH CHECK (true);
CREATE POLICY registrations_insert ON registrations FOR INSERT WITH CHECK (true);
CREATE POLICY attempts_insert ON attempts FOR INSERT WITH CHECK (true);
"""


def schema_statements() -> list[str]:
    return [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]


def main():
    logger.info("ExamDesk schema for %s", os.getenv("SUPABASE_URL") or "(SUPABASE_URL not set)")
    for i, stmt in enumerate(schema_statements(), 1):
        first = next((line for line in stmt.splitlines() if not line.startswith("--")), stmt)
        logger.info("Statement %d: %s...", i, first[:60])
    logger.info("\nThe Supabase client cannot run DDL. Paste this into the Supabase SQL Editor:")
    print(SCHEMA_SQL)


if __name__ == "__main__":
    main()
