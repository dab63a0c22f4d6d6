from .modules import ReportService
