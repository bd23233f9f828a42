import logging
from datetime import datetime

import mysql.connector
from mysql.connector import pooling
from retrying import retry

import settings
from derivatives.source_image import SourceImage

TIME_FORMAT_NO_OFFSET = "%Y-%m-%d %H:%M:%S"

LIFECYCLE_EVENTS = ('pre_save', 'post_save', 'pre_remove')


class SourceDb:
    """MySQL store of source image records.

    Registered lifecycle hooks are called as hook(event, source_id) before and
    after a record is saved and before it is removed.
    """

    def __init__(self, pool_size=None):
        self.pool_size = pool_size or settings.SQL_POOL_SIZE
        self.connection_pool = None
        self.hooks = []

    def log(self, msg):
        logging.debug(msg)

    def add_lifecycle_hook(self, hook):
        self.hooks.append(hook)

    def fire(self, event, source_id):
        for hook in self.hooks:
            hook(event, source_id)

    def initialize_pool(self):
        """
        Initialize the connection pool lazily if it hasn't been created yet.
        """
        if not self.connection_pool:
            self.log("Initializing connection pool...")
            try:
                self.connection_pool = pooling.MySQLConnectionPool(
                    pool_name="source_db_pool",
                    pool_size=self.pool_size,
                    user=settings.SQL_USER,
                    password=settings.SQL_PASSWORD,
                    host=settings.SQL_HOST,
                    port=settings.SQL_PORT,
                    database=settings.SQL_DATABASE,
                )
                self.log("Connection pool initialized.")
            except mysql.connector.Error as err:
                self.log(f"Failed to initialize connection pool: {err}")
                raise

    def connect(self):
        """Return True once the database is reachable."""
        try:
            cursor, connection = self.get_cursor()
        except mysql.connector.Error as e:
            self.log(f"Database not reachable: {e}")
            return False
        cursor.close()
        self.close_connection(connection)
        return True

    @retry(retry_on_exception=lambda e: isinstance(e, mysql.connector.Error), stop_max_attempt_number=3, wait_exponential_multiplier=1000)
    def get_cursor(self):
        """
        Get a connection from the pool and create a cursor.
        """
        try:
            self.initialize_pool()
            connection = self.connection_pool.get_connection()
            return connection.cursor(buffered=True), connection
        except mysql.connector.Error as e:
            self.log(f"Error getting cursor: {e}")
            raise

    def close_connection(self, connection):
        """
        Return a connection to the pool.
        """
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.log(f"Error closing connection: {e}")

    def execute(self, sql, params=()):
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.log(f"SQL: {sql} {params}")
            cursor.execute(sql, params)
            connection.commit()
            return cursor.rowcount
        except mysql.connector.Error as e:
            self.log(f"Error executing query: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def create_tables(self):
        """
        Create the required database tables if they do not exist.
        """
        self.execute(
            "CREATE TABLE IF NOT EXISTS `sources` ("
            "  id VARCHAR(255) NOT NULL PRIMARY KEY,"
            "  filepath VARCHAR(2000) NOT NULL,"
            "  extension VARCHAR(16),"
            "  watermark_text VARCHAR(500),"
            "  datetime DATETIME"
            ") ENGINE=InnoDB"
        )

    def get_source(self, source_id):
        """Return the SourceImage for source_id, or None."""
        cursor, connection = None, None
        try:
            query = """SELECT id, filepath, extension, watermark_text
                FROM sources
                WHERE id = %s"""
            cursor, connection = self.get_cursor()
            cursor.execute(query, (str(source_id),))
            row = cursor.fetchone()
            if row is None:
                return None
            id, filepath, extension, watermark_text = row
            return SourceImage.from_dict({
                'id': id,
                'filepath': filepath,
                'extension': extension,
                'watermark_text': watermark_text,
            })
        except mysql.connector.Error as e:
            self.log(f"Error fetching source {source_id}: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def save_source(self, source):
        """Insert or replace a source record, firing pre_save and post_save."""
        self.fire('pre_save', source.id)
        self.execute(
            """INSERT INTO sources (id, filepath, extension, watermark_text, datetime)
               VALUES (%s, %s, %s, %s, %s)
               ON DUPLICATE KEY UPDATE
               filepath = VALUES(filepath),
               extension = VALUES(extension),
               watermark_text = VALUES(watermark_text),
               datetime = VALUES(datetime)""",
            (source.id, source.filepath, source.extension, source.watermark_text,
             datetime.utcnow().strftime(TIME_FORMAT_NO_OFFSET))
        )
        self.fire('post_save', source.id)

    def delete_source(self, source_id):
        """Delete a source record, firing pre_remove. Returns False if absent."""
        if self.get_source(source_id) is None:
            return False
        self.fire('pre_remove', source_id)
        self.execute("DELETE FROM sources WHERE id = %s", (str(source_id),))
        return True
