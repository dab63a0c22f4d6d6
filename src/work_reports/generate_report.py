import argparse
import os
from datetime import date
from pathlib import Path, PurePosixPath
from typing import List, Optional
from urllib.parse import urlparse

from loguru import logger
from rich import print
from rich.table import Table

from shared_modules.config import Config
from shared_modules.errors import ReportGenerationError
from shared_modules.utils import atomic_write
from work_reports.modules.object_storage import StorageError
from work_reports.modules.report_service import ReportService

USER_ENV = "WORK_REPORTS_USER"


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=None, help="Pfad zur YAML-Konfiguration")
    common.add_argument(
        "--user", default=os.getenv(USER_ENV), help=f"Angemeldete Person (Default: ${USER_ENV})"
    )

    parser = argparse.ArgumentParser(prog="work-report", description="Monatliche Arbeitsberichte als PDF")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", parents=[common], help="Datenbankschema anlegen")

    p = sub.add_parser("import-template", parents=[common], help="Vorlage aus JSON-Datei importieren")
    p.add_argument("file", type=Path)

    p = sub.add_parser("configure", parents=[common], help="Berichtseinstellungen für eine Firma speichern")
    p.add_argument("company")
    p.add_argument("template")
    p.add_argument("--location")
    p.add_argument("--intro")
    p.add_argument("--outro")

    p = sub.add_parser("generate", parents=[common], help="Monatsbericht erstellen")
    p.add_argument("company")
    p.add_argument("month", help="Abrechnungsmonat, z. B. 2025-03")
    p.add_argument("--date", dest="report_date", default=None, help="Berichtsdatum (Default: heute)")
    p.add_argument("--persist", action="store_true", help="Zusätzlich im Objektspeicher ablegen")
    p.add_argument("--on-behalf-of", dest="on_behalf_of", default=None, help="Nur für Admins")

    p = sub.add_parser("list", parents=[common], help="Gespeicherte Berichte anzeigen")
    p.add_argument("--company", default=None)

    p = sub.add_parser("total", parents=[common], help="Monatssumme anzeigen")
    p.add_argument("company")
    p.add_argument("month")

    p = sub.add_parser("url", parents=[common], help="Signierten Download-Link erzeugen")
    p.add_argument("path")

    p = sub.add_parser("fetch", parents=[common], help="Bericht über signierten Link herunterladen")
    p.add_argument("url")
    p.add_argument("--out", type=Path, default=None, help="Zieldatei (Default: Dateiname aus dem Link)")
    return parser


def run(args: argparse.Namespace, service: ReportService) -> int:
    if args.command == "import-template":
        template = service.import_template(args.file)
        print(f"[green]Vorlage importiert:[/green] {template.name} ({template.id})")
    elif args.command == "configure":
        cfg = service.save_report_config(
            args.company, args.template, location=args.location, intro_text=args.intro, outro_text=args.outro
        )
        print(f"[green]Einstellungen gespeichert[/green] für Firma {cfg.company_id}")
    elif args.command == "generate":
        result = service.generate_report(
            args.company,
            args.month,
            args.report_date or date.today(),
            actor_id=args.on_behalf_of,
            persist=args.persist,
        )
        if result.error is not None:
            print(f"[red]{result.error.kind.value}:[/red] {result.error.message}")
            if result.delivery is not None and result.delivery.orphaned_storage_path:
                print(f"[yellow]Verwaistes Objekt:[/yellow] {result.delivery.orphaned_storage_path}")
            return 1
        print(f"[green]Bericht erstellt:[/green] {result.delivery.download_path}")
        if result.delivery.storage_path:
            print(f"Gespeichert unter {result.delivery.storage_path}")
    elif args.command == "list":
        table = Table(title="Gespeicherte Berichte")
        for column in ("ID", "Firma", "Monat", "Berichtsdatum", "Pfad", "Erstellt"):
            table.add_column(column)
        for record in service.list_generated_reports(company_id=args.company):
            table.add_row(
                record.id or "",
                record.company_name or record.company_id,
                service.formatter.month(record.period),
                record.report_date.isoformat(),
                record.storage_path or "",
                f"{record.created_at:%Y-%m-%d %H:%M}" if record.created_at else "",
            )
        print(table)
    elif args.command == "total":
        total = service.monthly_total(args.company, args.month)
        print(
            f"{total.record_count} Einträge, "
            f"{service.formatter.hours(total.total_hours)} Stunden, "
            f"{service.formatter.currency(total.total_amount)}"
        )
    elif args.command == "url":
        print(service.get_report_download_url(args.path))
    elif args.command == "fetch":
        data = service.fetch_report(args.url)
        target = args.out or Path(PurePosixPath(urlparse(args.url).path).name)
        with atomic_write(target) as tmp_path:
            tmp_path.write_bytes(data)
        print(f"[green]Bericht gespeichert:[/green] {target}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Einstiegspunkt der Kommandozeile. Lädt die Config, baut den ReportService
    und führt den gewählten Befehl aus.
    """
    args = build_parser().parse_args(argv)
    config = Config(args.config)

    if args.command == "init-db":
        ReportService.from_config(config, args.user or "").repository.init_schema()
        print(f"[green]Datenbank bereit:[/green] {config.db_path}")
        return 0

    if not args.user:
        print(f"[red]Keine Person angegeben.[/red] --user oder ${USER_ENV} setzen.")
        return 2

    service = ReportService.from_config(config, args.user)
    try:
        return run(args, service)
    except (ReportGenerationError, StorageError, OSError, ValueError) as e:
        logger.error(f"{args.command} fehlgeschlagen: {e}")
        print(f"[red]Fehler:[/red] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
