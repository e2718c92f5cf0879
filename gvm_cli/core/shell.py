"""
Keeps the shim directory on the user's command search path by maintaining a
marked block in the shell startup file (POSIX) or an environment script plus a
one-time profile hook (Windows).
"""

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from gvm_cli.exceptions import ShellIntegrationError
from gvm_cli.utils.platform import is_windows

log = logging.getLogger(__name__)

BLOCK_START = "# >>> gvm >>>"
BLOCK_END = "# <<< gvm <<<"
LEGACY_MARKER = "# GVM PATH"
HOOK_MARKER = "# gvm"


class ShellIntegrator:
    """Adds the shim directory to PATH exactly once."""

    def __init__(
        self,
        gvm_home: Path,
        environ: Mapping[str, str] | None = None,
        home: Path | None = None,
        target_os: str | None = None,
    ):
        self.gvm_home = gvm_home
        self.environ = os.environ if environ is None else environ
        self.home = home or Path.home()
        self.target_os = target_os

    def ensure_on_path(self, shims_dir: Path) -> list[Path]:
        """
        Makes sure future shells find `shims_dir` on PATH.

        Returns:
            The files that were changed; empty when nothing needed changing or
            the shell could not be detected.

        Raises:
            ShellIntegrationError: If a startup file cannot be read or written.
        """
        if is_windows(self.target_os):
            return self._ensure_windows(shims_dir)
        return self._ensure_posix(shims_dir)

    def detect_rc_file(self) -> tuple[Path, str] | None:
        """Finds the startup file of the user's login shell from $SHELL."""
        shell = self.environ.get("SHELL", "")
        if not shell:
            return None

        shell_name = Path(shell).name
        if shell_name == "bash":
            bashrc = self.home / ".bashrc"
            if bashrc.exists():
                return bashrc, shell_name
            return self.home / ".bash_profile", shell_name
        if shell_name == "zsh":
            return self.home / ".zshrc", shell_name
        if shell_name == "fish":
            return self.home / ".config" / "fish" / "config.fish", shell_name
        return None

    @staticmethod
    def render_block(shims_dir: Path, shell_name: str) -> str:
        if shell_name == "fish":
            line = f'set -gx PATH "{shims_dir}" $PATH'
        else:
            line = f'export PATH="{shims_dir}:$PATH"'
        return "\n".join([BLOCK_START, line, BLOCK_END])

    @staticmethod
    def rewrite_block(content: str, block: str) -> str:
        """
        Removes any previous gvm block (and legacy single-line entries) and
        appends `block` at the end.
        """
        kept: list[str] = []
        inside_block = False
        for line in content.splitlines():
            stripped = line.strip()
            if stripped == BLOCK_START:
                inside_block = True
                continue
            if stripped == BLOCK_END:
                inside_block = False
                continue
            if inside_block or LEGACY_MARKER in line:
                continue
            kept.append(line)

        while kept and not kept[-1].strip():
            kept.pop()
        if kept:
            kept.append("")
        kept.extend(block.splitlines())
        return "\n".join(kept) + "\n"

    def _ensure_posix(self, shims_dir: Path) -> list[Path]:
        detected = self.detect_rc_file()
        if detected is None:
            log.warning(
                "[yellow]Could not detect a supported shell (bash, zsh, fish). "
                f'Add this to your shell profile:[/yellow] export PATH="{shims_dir}:$PATH"'
            )
            return []

        rc_file, shell_name = detected
        rc_file = rc_file.resolve()
        current = self._read(rc_file)
        updated = self.rewrite_block(current, self.render_block(shims_dir, shell_name))
        if updated == current:
            log.debug(f"Shell config '{rc_file}' already up to date.")
            return []

        self._write_atomic(rc_file, updated)
        log.info(f"Updated PATH in [dim]{rc_file}[/dim]")
        return [rc_file]

    def _ensure_windows(self, shims_dir: Path) -> list[Path]:
        changed: list[Path] = []
        env_script = self.gvm_home / "env.ps1"
        script = f'$env:Path = "{shims_dir};" + $env:Path\n'
        if self._read(env_script) != script:
            self._write_atomic(env_script, script)
            changed.append(env_script)

        hook = f'. "{env_script}" {HOOK_MARKER}'
        documents = self.home / "Documents"
        for profile in (
            documents / "PowerShell" / "Microsoft.PowerShell_profile.ps1",
            documents / "WindowsPowerShell" / "Microsoft.PowerShell_profile.ps1",
        ):
            content = self._read(profile)
            if hook in content:
                continue
            prefix = content if not content or content.endswith("\n") else content + "\n"
            self._write_atomic(profile, f"{prefix}{hook}\n")
            changed.append(profile)

        if changed:
            log.info("Updated PowerShell profile to load gvm shims.")
        return changed

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise ShellIntegrationError(f"Failed to read '{path}': {e}") from e

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            if path.exists():
                os.chmod(tmp_name, path.stat().st_mode & 0o7777)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise ShellIntegrationError(f"Failed to update '{path}': {e}") from e
        finally:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
