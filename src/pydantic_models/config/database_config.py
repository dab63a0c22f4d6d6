from typing import Optional
from pydantic import BaseModel

class DatabaseConfig(BaseModel):
    sqlite_db_name: Optional[str] = "work_reports.sqlite3"
