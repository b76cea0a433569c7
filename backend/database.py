# database.py - SQLite storage for uploaded file records
import sqlite3
import time
import uuid
from typing import Dict, List, Optional, Any
from contextlib import contextmanager
import logging

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

class FileDatabase:
    def __init__(self, db_path: str = "files.db"):
        self.db_path = db_path
        self.init_database()

    def init_database(self):
        """Initialize the database with required tables"""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_files (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    type TEXT DEFAULT '',
                    size INTEGER DEFAULT 0,
                    cid TEXT NOT NULL,
                    user_id TEXT DEFAULT '',
                    wallet_address TEXT DEFAULT '',
                    uploaded_at INTEGER DEFAULT (strftime('%s', 'now'))
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_user_files_user ON user_files (user_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_user_files_wallet ON user_files (wallet_address)")
            conn.commit()
            logger.info("Database initialized successfully")

    @contextmanager
    def get_connection(self):
        """Context manager for database connections"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def insert_file(self, file_data: Dict[str, Any]) -> Optional[str]:
        """Insert a file record, returns its id or None on failure"""
        file_id = file_data.get('id') or str(uuid.uuid4())
        try:
            with self.get_connection() as conn:
                conn.execute("""
                    INSERT INTO user_files (
                        id, name, type, size, cid, user_id, wallet_address, uploaded_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    file_id,
                    file_data['name'],
                    file_data.get('type', ''),
                    int(file_data.get('size', 0)),
                    file_data['cid'],
                    file_data.get('user_id') or '',
                    (file_data.get('wallet_address') or '').lower(),
                    file_data.get('uploaded_at') or int(time.time())
                ))
                conn.commit()
                logger.info(f"Saved file {file_id} ({file_data['cid']})")
                return file_id
        except (sqlite3.Error, KeyError) as e:
            logger.error(f"Error inserting file {file_id}: {e}")
            return None

    def get_file(self, file_id: str) -> Optional[Dict[str, Any]]:
        """Get a single file record by ID"""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM user_files WHERE id = ?", (file_id,))
                row = cursor.fetchone()
                if row:
                    return dict(row)
                return None
        except sqlite3.Error as e:
            logger.error(f"Error fetching file {file_id}: {e}")
            return None

    def get_user_files(self, user_id: str = '', wallet_address: str = '') -> List[Dict[str, Any]]:
        """Files owned by the user id or the wallet address (either matches)"""
        wallet_address = (wallet_address or '').lower()
        clauses, params = [], []
        if user_id:
            clauses.append("user_id = ?")
            params.append(user_id)
        if wallet_address:
            clauses.append("wallet_address = ?")
            params.append(wallet_address)
        if not clauses:
            return []

        try:
            with self.get_connection() as conn:
                cursor = conn.execute(f"""
                    SELECT * FROM user_files WHERE {' OR '.join(clauses)}
                    ORDER BY uploaded_at DESC, rowid DESC
                """, params)
                files = [dict(row) for row in cursor.fetchall()]
                logger.info(f"Retrieved {len(files)} files")
                return files
        except sqlite3.Error as e:
            logger.error(f"Error fetching user files: {e}")
            return []

    def delete_file(self, file_id: str) -> bool:
        """Delete a file record, returns False if it did not exist"""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute("DELETE FROM user_files WHERE id = ?", (file_id,))
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting file {file_id}: {e}")
            return False

    def get_file_count(self) -> int:
        try:
            with self.get_connection() as conn:
                cursor = conn.execute("SELECT COUNT(*) as count FROM user_files")
                return cursor.fetchone()['count']
        except sqlite3.Error as e:
            logger.error(f"Error getting file count: {e}")
            return 0
