from typing import Optional
from pydantic import BaseModel

class LoggingConfig(BaseModel):
    log_file: Optional[str] = "work_reports.log"    # Defaultwert, relativ zu structure.log_path
    log_level: Optional[str] = "INFO"               # Defaultwert
    rotation: Optional[str] = "10 MB"
    retention: Optional[str] = "10 days"
