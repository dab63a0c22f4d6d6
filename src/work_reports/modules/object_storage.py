import json
import time
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from shared_modules.utils import atomic_write, ensure_dir

SIGNED_URL_SCHEME = "storage"


class StorageError(RuntimeError):
    """Fehler im Objektspeicher (Upload, Download, signierte Links)."""


class LocalObjectStorage:
    """
    Objektspeicher auf dem lokalen Dateisystem: ein Verzeichnis je Bucket,
    Objektpfade wie "user/company/2025-03.pdf" relativ dazu.
    Signierte Download-Links sind Fernet-Tokens mit Ablaufzeit.
    """

    def __init__(self, root: Path, bucket: str = "work-reports", signing_key: Optional[str] = None):
        self.bucket: str = bucket
        self.bucket_dir: Path = ensure_dir(Path(root) / bucket)
        if not signing_key:
            logger.warning(
                "Kein Signaturschlüssel konfiguriert, signierte Links gelten nur für diesen Prozess."
            )
            signing_key = Fernet.generate_key().decode()
        self._fernet = Fernet(signing_key.encode() if isinstance(signing_key, str) else signing_key)

    def _resolve(self, path: str) -> Path:
        """
        Objektpfad -> Datei im Bucket. Absolute Pfade und ".." sind nicht erlaubt.
        """
        pure = PurePosixPath(path)
        if not path or pure.is_absolute() or ".." in pure.parts:
            raise StorageError(f"Ungültiger Objektpfad: {path!r}")
        return self.bucket_dir.joinpath(*pure.parts)

    def upload(self, path: str, data: bytes, content_type: str = "application/pdf", upsert: bool = True) -> str:
        """
        Speichert data unter path. Bei upsert wird ein bestehendes Objekt überschrieben.

        Returns:
            str: Der Objektpfad.
        Raises:
            StorageError: Wenn das Objekt existiert und upsert False ist oder das Schreiben scheitert.
        """
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"Objekt existiert bereits: {path}")
        try:
            with atomic_write(target) as tmp_path:
                tmp_path.write_bytes(data)
        except OSError as e:
            logger.error(f"Upload nach {path} fehlgeschlagen: {e}")
            raise StorageError(f"Upload fehlgeschlagen: {e}") from e
        logger.debug(f"{len(data)} Bytes ({content_type}) nach {self.bucket}/{path} geschrieben.")
        return path

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Objekt nicht gefunden: {path}")
        return target.read_bytes()

    def create_signed_url(self, path: str, expires_in: int = 3600) -> str:
        """
        Zeitlich begrenzter Download-Link für ein gespeichertes Objekt.

        Raises:
            StorageError: Wenn das Objekt nicht existiert.
        """
        if not self.exists(path):
            raise StorageError(f"Download-Link konnte nicht erstellt werden, Objekt fehlt: {path}")
        payload = json.dumps({"bucket": self.bucket, "path": path, "ttl": int(expires_in)}).encode()
        token = self._fernet.encrypt_at_time(payload, int(time.time())).decode()
        return f"{SIGNED_URL_SCHEME}://{self.bucket}/{path}?" + urlencode({"token": token})

    def resolve_signed_url(self, url: str, now: Optional[int] = None) -> str:
        """
        Prüft einen signierten Link und liefert den Objektpfad, der mit download()
        gelesen werden kann.

        Raises:
            StorageError: Bei ungültigem, manipuliertem oder abgelaufenem Link.
        """
        tokens = parse_qs(urlparse(url).query).get("token")
        if not tokens:
            raise StorageError("Signierter Link ohne Token.")
        try:
            unverified = json.loads(self._fernet.decrypt(tokens[0].encode()))
            current = int(time.time()) if now is None else now
            payload = json.loads(
                self._fernet.decrypt_at_time(tokens[0].encode(), unverified["ttl"], current)
            )
        except InvalidToken as e:
            raise StorageError("Signierter Link ist ungültig oder abgelaufen.") from e
        if payload["bucket"] != self.bucket:
            raise StorageError("Signierter Link gehört zu einem anderen Bucket.")
        if not self.exists(payload["path"]):
            raise StorageError(f"Objekt nicht gefunden: {payload['path']}")
        return payload["path"]
