import os
import subprocess
import time
from pathlib import Path
from urllib.parse import unquote, urlparse

import aria2p

from .errors import InstallFailure
from .utils import logger


class Downloader:
    def __init__(self, port: int = 6800):
        self.aria2 = self._launch_aria2c(port)

    def _check_aria2c(
        self,
        aria2: aria2p.API,
        max_retries: int = 3,
        retries_interval: int = 2,
    ) -> bool:
        for _ in range(max_retries):
            try:
                aria2.get_stats()
                return True
            except Exception:
                time.sleep(retries_interval)
        return False

    def _launch_aria2c(self, port: int) -> aria2p.API:
        aria2 = aria2p.API(aria2p.Client(host="http://localhost", port=port, secret=""))
        # check if aria2c is already running
        if self._check_aria2c(aria2, max_retries=1, retries_interval=0):
            logger.info("✅ aria2c is already running")
            return aria2
        logger.info("🚀 Launching aria2c...")
        cmd = [
            "aria2c",
            "--enable-rpc",
            f"--rpc-listen-port={port}",
            "--max-concurrent-downloads=1",
            "--max-connection-per-server=16",
            "--split=16",
            "--continue=true",
        ]
        try:
            if os.name == "nt":
                # --daemon is unsupported on Windows, detach the process instead
                subprocess.Popen(
                    cmd,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    creationflags=subprocess.CREATE_NEW_PROCESS_GROUP
                    | subprocess.DETACHED_PROCESS,
                )
            else:
                subprocess.run(cmd + ["--daemon=true"], check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise InstallFailure(f"Failed to launch aria2c: {e}") from e
        # give the rpc server a moment to come up
        time.sleep(2)
        if not self._check_aria2c(aria2):
            raise InstallFailure("Failed to connect to aria2c after launching")
        # purge all completed, removed or failed downloads from the queue
        aria2.purge()
        return aria2

    def download(
        self,
        url: str,
        filename: str,
        dir: Path,
        max_retries: int = 3,
        retries_interval: int = 2,
    ) -> bool:
        download_options = {"dir": str(dir), "out": filename}
        for attempt in range(max_retries):
            try:
                download = self.aria2.add_uris([url], download_options)
                while not download.is_complete:
                    download.update()
                    if download.status == "error":
                        download.remove(files=True)
                        raise Exception(f"{download.error_message}")
                    if download.status == "removed":
                        raise Exception("Download was removed")
                    logger.info(
                        f"{filename}: {download.progress_string()} | {download.completed_length_string()}/{download.total_length_string()} [{download.eta_string()}, {download.download_speed_string()}]"
                    )
                    time.sleep(1)
                logger.info(f"✅ Downloaded: {filename} -> {dir}")
                return True
            except Exception as e:
                logger.error(f"❌ Failed to download {filename}: {str(e)}")
                if attempt == max_retries - 1:
                    break
                logger.warning(
                    f"⚠️ Retrying in {retries_interval} seconds... ({attempt + 1}/{max_retries})"
                )
                time.sleep(retries_interval)
        logger.error("❌ Max retries reached, abort.")
        return False


def wheel_filename(url: str) -> str:
    name = unquote(Path(urlparse(url).path).name)
    if not name.endswith(".whl"):
        raise ValueError(f"URL does not point to a wheel: {url}")
    return name


def fetch_wheel(downloader: Downloader, url: str, dest_dir: Path) -> Path:
    try:
        filename = wheel_filename(url)
    except ValueError as e:
        raise InstallFailure(str(e)) from e
    path = dest_dir / filename
    # an .aria2 control file means the previous download did not finish
    control_file = dest_dir / (filename + ".aria2")
    if path.is_file() and not control_file.exists():
        logger.info(f"ℹ️ {filename} already downloaded. Skipped.")
        return path
    dest_dir.mkdir(parents=True, exist_ok=True)
    if not downloader.download(url, filename, dest_dir):
        raise InstallFailure(f"Failed to download prebuilt wheel: {url}")
    return path
