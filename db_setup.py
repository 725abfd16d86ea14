# file: db_setup.py
from db_utils import get_db_connection

SCHEMA_VERSION = "1"


def setup_database():
    """
    Creates the event log tables in the DB.
    Idempotent, safe to run on every startup.
    """
    print("--- Starting Database Setup ---")
    conn = get_db_connection()
    cursor = conn.cursor()

    try:
        print("1. Creating 'trade_log' table...")
        cursor.execute("""
        CREATE TABLE IF NOT EXISTS trade_log (
           id INTEGER PRIMARY KEY AUTOINCREMENT,
           timestamp_utc TEXT NOT NULL,
           event_type TEXT NOT NULL,
           payload_json TEXT
        );
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_trade_log_event_type ON trade_log(event_type);")
        print("   ... 'trade_log' table is ready.")

        print("2. Setting up schema version...")
        cursor.execute("CREATE TABLE IF NOT EXISTS db_meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
        cursor.execute("INSERT OR IGNORE INTO db_meta (key, value) VALUES ('schema_version', ?);", (SCHEMA_VERSION,))
        print("   ... Schema version is set.")

        conn.commit()
        print("--- Database setup successfully completed! ---")

    except Exception as e:
        print(f"--- An error occurred during database setup: {e} ---")
        conn.rollback()
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    setup_database()
