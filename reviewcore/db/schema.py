"""
DuckDB schema for schedule records, lesson content and completion history.
"""

# Timestamps are stored as naive UTC. No secondary indexes: DuckDB cannot
# upsert into columns referenced by an index.
DB_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS schedule_records (
        learner_id VARCHAR NOT NULL,
        item_id VARCHAR NOT NULL,
        interval_days INTEGER NOT NULL CHECK (interval_days >= 0),
        ease_factor DOUBLE NOT NULL,
        next_review_at DATE NOT NULL,
        last_reviewed_at DATE,
        review_count INTEGER NOT NULL DEFAULT 0 CHECK (review_count >= 0),
        learning_stage VARCHAR NOT NULL,
        correct_count INTEGER NOT NULL DEFAULT 0,
        consecutive_correct INTEGER NOT NULL DEFAULT 0,
        modified_at TIMESTAMP NOT NULL,
        PRIMARY KEY (learner_id, item_id)
    );

    CREATE TABLE IF NOT EXISTS content_items (
        item_id VARCHAR PRIMARY KEY,
        lesson_id VARCHAR,
        prompt VARCHAR NOT NULL,
        answer VARCHAR NOT NULL,
        difficulty INTEGER NOT NULL CHECK (difficulty >= 1 AND difficulty <= 5)
    );

    CREATE TABLE IF NOT EXISTS lessons (
        lesson_id VARCHAR PRIMARY KEY,
        title VARCHAR
    );

    CREATE TABLE IF NOT EXISTS lesson_items (
        lesson_id VARCHAR NOT NULL,
        item_id VARCHAR NOT NULL,
        position INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS lesson_completions (
        learner_id VARCHAR NOT NULL,
        lesson_id VARCHAR NOT NULL,
        completed_at TIMESTAMP NOT NULL,
        PRIMARY KEY (learner_id, lesson_id)
    );

"""
