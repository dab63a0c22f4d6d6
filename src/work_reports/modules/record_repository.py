import json
import sqlite3
import uuid
from contextlib import closing
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from pydantic_models.data.activity_rate import ActivityRate
from pydantic_models.data.actor_identity import ActorIdentity, ActorRole
from pydantic_models.data.company_profile import CompanyProfile
from pydantic_models.data.generated_artifact_record import GeneratedArtifactRecord
from pydantic_models.data.report_config import ReportConfig, ReportTemplate
from pydantic_models.data.work_record import WorkRecord
from shared_modules.month_period import parse_period
from shared_modules.utils import ensure_dir

SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL DEFAULT 'freelancer',
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS companies (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    tax_number TEXT,
    city TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS activities (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    hourly_rate TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS work_entries (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    activity_id TEXT NOT NULL,
    company_id TEXT NOT NULL,
    month TEXT NOT NULL,
    hours TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (user_id, activity_id, company_id, month)
);
CREATE TABLE IF NOT EXISTS report_templates (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    template_definition TEXT NOT NULL,
    styles TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS report_configs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    company_id TEXT NOT NULL,
    template_id TEXT NOT NULL,
    intro_text TEXT,
    outro_text TEXT,
    location TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (user_id, company_id)
);
CREATE TABLE IF NOT EXISTS generated_reports (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    company_id TEXT NOT NULL,
    report_period TEXT NOT NULL,
    report_date TEXT NOT NULL,
    file_path TEXT,
    save_to_storage INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
"""


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame -> Liste von Dicts mit Python-Werten, NaN wird zu None."""
    return df.astype(object).where(pd.notna(df), None).to_dict("records")


class SqliteRecordRepository:
    """
    Lese- und Schreibzugriffe auf die SQLite-Datenbank.
    Jede Abfrage öffnet ihre eigene Verbindung, damit parallele Lookups
    (z. B. aus dem ReportAggregator) keinen Zustand teilen.
    Beträge und Stunden liegen als TEXT in der Datenbank, damit Dezimalwerte exakt bleiben.
    """

    def __init__(self, db_path: Path):
        self.db_path: Path = Path(db_path)

    def get_db_connection(self) -> sqlite3.Connection:
        """
        Öffnet eine SQLite-Verbindung zur konfigurierten Datei.
        """
        return sqlite3.connect(self.db_path)

    def init_schema(self) -> None:
        """Legt alle Tabellen an, falls sie noch fehlen."""
        ensure_dir(self.db_path.parent)
        with closing(self.get_db_connection()) as conn:
            conn.executescript(SCHEMA)
        logger.info(f"Datenbankschema in {self.db_path} bereit.")

    def _read(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with closing(self.get_db_connection()) as conn:
            df = pd.read_sql_query(sql, conn, params=tuple(params))
        return _records(df)

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with closing(self.get_db_connection()) as conn:
            with conn:
                cursor = conn.execute(sql, tuple(params))
                return cursor.rowcount

    # ------------------------------------------------------------------
    # Lesende Abfragen für die Berichtserstellung
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[ActorIdentity]:
        rows = self._read("SELECT id, full_name, role FROM profiles WHERE id = ?", (user_id,))
        if not rows:
            return None
        row = rows[0]
        return ActorIdentity(id=row["id"], display_name=row["full_name"], role=row["role"])

    def get_company(self, company_id: str) -> Optional[CompanyProfile]:
        rows = self._read(
            "SELECT id, name, tax_number, city FROM companies WHERE id = ?", (company_id,)
        )
        if not rows:
            return None
        row = rows[0]
        return CompanyProfile(id=row["id"], name=row["name"], tax_id=row["tax_number"], city=row["city"])

    def get_report_config(self, user_id: str, company_id: str) -> Optional[ReportConfig]:
        rows = self._read(
            """
            SELECT id, user_id, company_id, template_id, intro_text, outro_text, location
            FROM report_configs
            WHERE user_id = ? AND company_id = ?
            """,
            (user_id, company_id),
        )
        return ReportConfig(**rows[0]) if rows else None

    def get_report_template(self, template_id: str) -> Optional[ReportTemplate]:
        rows = self._read(
            "SELECT id, name, template_definition, styles FROM report_templates WHERE id = ?",
            (template_id,),
        )
        return self._to_template(rows[0]) if rows else None

    def list_report_templates(self) -> List[ReportTemplate]:
        rows = self._read(
            "SELECT id, name, template_definition, styles FROM report_templates ORDER BY name"
        )
        return [self._to_template(row) for row in rows]

    @staticmethod
    def _to_template(row: Dict[str, Any]) -> ReportTemplate:
        return ReportTemplate(
            id=row["id"],
            name=row["name"],
            template_definition=json.loads(row["template_definition"]),
            styles=json.loads(row["styles"]) if row["styles"] else None,
        )

    def list_work_records(self, user_id: str, company_id: str, period: Any) -> List[WorkRecord]:
        """
        Arbeitseinträge eines Monats inklusive Tätigkeit, sortiert nach
        Erfassungszeitpunkt und bei Gleichstand nach ID.
        """
        month = parse_period(period).isoformat()
        sql = """
        SELECT
            w.id, w.user_id, w.company_id, w.activity_id, w.month AS period,
            w.hours, w.created_at,
            a.id AS activity_ref, a.name AS activity_name, a.hourly_rate AS activity_rate
        FROM work_entries w
        LEFT JOIN activities a ON a.id = w.activity_id
        WHERE w.user_id = ? AND w.company_id = ? AND w.month = ?
        ORDER BY w.created_at, w.id
        """
        logger.debug(f"Lade Arbeitseinträge für Firma {company_id}, Monat {month}.")
        rows = self._read(sql, (user_id, company_id, month))

        records: List[WorkRecord] = []
        for idx, row in enumerate(rows):
            activity = None
            if row.pop("activity_ref") is not None:
                activity = ActivityRate(
                    id=row["activity_id"], name=row["activity_name"], hourly_rate=row["activity_rate"]
                )
            row.pop("activity_name")
            row.pop("activity_rate")
            try:
                records.append(WorkRecord(**row, activity=activity))
            except ValidationError as e:
                logger.error(f"Ungültiger Arbeitseintrag in Zeile {idx}: {e}")
                raise
        return records

    def list_generated_reports(
        self, user_id: str, company_id: Optional[str] = None
    ) -> List[GeneratedArtifactRecord]:
        sql = """
        SELECT g.id, g.user_id, g.company_id, g.report_period, g.report_date,
               g.file_path, g.save_to_storage, g.created_at, c.name AS company_name
        FROM generated_reports g
        LEFT JOIN companies c ON c.id = g.company_id
        WHERE g.user_id = ?
        """
        params: List[Any] = [user_id]
        if company_id:
            sql += " AND g.company_id = ?"
            params.append(company_id)
        sql += " ORDER BY g.created_at DESC"
        return [
            GeneratedArtifactRecord(
                id=row["id"],
                actor_id=row["user_id"],
                company_id=row["company_id"],
                period=row["report_period"],
                report_date=row["report_date"],
                storage_path=row["file_path"],
                persisted=bool(row["save_to_storage"]),
                created_at=row["created_at"],
                company_name=row["company_name"],
            )
            for row in self._read(sql, params)
        ]

    # ------------------------------------------------------------------
    # Schreibende Zugriffe
    # ------------------------------------------------------------------

    def insert_generated_report(self, record: GeneratedArtifactRecord) -> GeneratedArtifactRecord:
        """
        Schreibt einen Tracking-Eintrag. Es gibt keinen Update-Pfad.
        """
        stored = record.model_copy(update={"id": record.id or _new_id(), "created_at": datetime.now()})
        self._execute(
            """
            INSERT INTO generated_reports
                (id, user_id, company_id, report_period, report_date, file_path, save_to_storage, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                stored.id,
                stored.actor_id,
                stored.company_id,
                stored.period.isoformat(),
                stored.report_date.isoformat(),
                stored.storage_path,
                int(stored.persisted),
                stored.created_at.isoformat(timespec="microseconds"),
            ),
        )
        logger.debug(f"Tracking-Eintrag {stored.id} für {stored.storage_path} geschrieben.")
        return stored

    def delete_generated_report(self, report_id: str, user_id: str) -> bool:
        deleted = self._execute(
            "DELETE FROM generated_reports WHERE id = ? AND user_id = ?", (report_id, user_id)
        )
        return deleted > 0

    def upsert_report_config(self, config: ReportConfig) -> ReportConfig:
        """
        Legt die Berichtseinstellungen an oder aktualisiert sie (eindeutig je Nutzer und Firma).
        """
        existing = self.get_report_config(config.user_id, config.company_id)
        config_id = existing.id if existing else (config.id or _new_id())
        self._execute(
            """
            INSERT INTO report_configs
                (id, user_id, company_id, template_id, intro_text, outro_text, location, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, company_id) DO UPDATE SET
                template_id = excluded.template_id,
                intro_text = excluded.intro_text,
                outro_text = excluded.outro_text,
                location = excluded.location
            """,
            (
                config_id,
                config.user_id,
                config.company_id,
                config.template_id,
                config.intro_text,
                config.outro_text,
                config.location,
                _now(),
            ),
        )
        return config.model_copy(update={"id": config_id})

    def save_report_template(
        self, name: str, template_definition: Any, styles: Optional[Dict[str, Any]] = None
    ) -> ReportTemplate:
        """Speichert eine Vorlage; eine bestehende Vorlage gleichen Namens wird ersetzt."""
        rows = self._read("SELECT id FROM report_templates WHERE name = ?", (name,))
        template_id = rows[0]["id"] if rows else _new_id()
        self._execute(
            """
            INSERT INTO report_templates (id, name, template_definition, styles, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (name) DO UPDATE SET
                template_definition = excluded.template_definition,
                styles = excluded.styles
            """,
            (
                template_id,
                name,
                json.dumps(template_definition),
                json.dumps(styles) if styles else None,
                _now(),
            ),
        )
        return ReportTemplate(id=template_id, name=name, template_definition=template_definition, styles=styles)

    def add_profile(self, full_name: str, role: ActorRole = ActorRole.FREELANCER, user_id: Optional[str] = None) -> ActorIdentity:
        user_id = user_id or _new_id()
        self._execute(
            "INSERT INTO profiles (id, full_name, role, created_at) VALUES (?, ?, ?, ?)",
            (user_id, full_name, ActorRole(role).value, _now()),
        )
        return ActorIdentity(id=user_id, display_name=full_name, role=role)

    def add_company(
        self,
        user_id: str,
        name: str,
        tax_id: Optional[str] = None,
        city: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> CompanyProfile:
        company_id = company_id or _new_id()
        self._execute(
            "INSERT INTO companies (id, user_id, name, tax_number, city, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (company_id, user_id, name, tax_id, city, _now()),
        )
        return CompanyProfile(id=company_id, name=name, tax_id=tax_id, city=city)

    def add_activity(
        self, user_id: str, name: str, hourly_rate: Decimal, activity_id: Optional[str] = None
    ) -> ActivityRate:
        activity = ActivityRate(id=activity_id or _new_id(), name=name, hourly_rate=hourly_rate)
        self._execute(
            "INSERT INTO activities (id, user_id, name, hourly_rate, created_at) VALUES (?, ?, ?, ?, ?)",
            (activity.id, user_id, activity.name, str(activity.hourly_rate), _now()),
        )
        return activity

    def upsert_work_entry(
        self,
        user_id: str,
        company_id: str,
        activity_id: str,
        period: Any,
        hours: Decimal,
        created_at: Optional[datetime] = None,
        entry_id: Optional[str] = None,
    ) -> str:
        """
        Erfasst Stunden für Tätigkeit, Firma und Monat. Ein bestehender Eintrag
        für dieselbe Kombination wird überschrieben.

        Raises:
            ValueError: Wenn hours nicht größer als 0 ist.
        """
        hours = Decimal(str(hours))
        if hours <= 0:
            raise ValueError("Stunden müssen größer als 0 sein.")
        month: date = parse_period(period)
        entry_id = entry_id or _new_id()
        self._execute(
            """
            INSERT INTO work_entries (id, user_id, activity_id, company_id, month, hours, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, activity_id, company_id, month) DO UPDATE SET
                hours = excluded.hours
            """,
            (
                entry_id,
                user_id,
                activity_id,
                company_id,
                month.isoformat(),
                str(hours),
                (created_at or datetime.now()).isoformat(timespec="microseconds"),
            ),
        )
        return entry_id
