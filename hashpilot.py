#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HashPilot - Hashcat Campaign Controller

Features:
- Runs hashcat through an operator-ordered list of attack phases
- Ranks dictionaries by the passwords they recovered in previous campaigns
- Re-applies every rule to a dictionary until it stops finding passwords
- Keeps a per-run custom dictionary and a cross-run historical dictionary
- Timed confirmation before every phase (defaults to yes)
"""
import argparse
import json
import logging
import os
import queue
import re
import secrets
import shutil
import signal
import subprocess
import sys
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tqdm import tqdm

log = logging.getLogger(__name__)

# =============================================
# CONSTANTS
# =============================================
NOT_FOUND_SENTINEL = "[notfound]"

# hashcat exits with 1 when a pass is exhausted without cracking everything
EXHAUSTED_EXIT_CODE = 1
TOLERATED_EXIT_CODES = (0, EXHAUSTED_EXIT_CODE)

NTLM_MODE = "1000"
LM_MODE = "3000"

# (mask, increment bounds) for the LM pre-phase: exactly length 6, then 7
LM_ATTACKS = [
    ("?a?a?a?a?a?a", None),
    ("?a?a?a?a?a?a?a", None),
]
BRUTE_FORCE_MASK = "?a?a?a?a?a?a?a?a"
AUTOMASK_INCREMENT = (8, 10)

DICT_GLOB = "*.dico"
RULE_GLOB = "*.rule"
BEST64_RULE = "best64.rule"

DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_ROUNDS = 50

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
LOG_DATEFMT = "%H:%M:%S"

POSIX_HASHCAT_PATHS = ["/opt/hashcat/hashcat.bin", "./hashcat/hashcat.bin", "./hashcat.bin"]
WINDOWS_HASHCAT_PATHS = ["hashcat.exe", "./hashcat/hashcat.exe", "./hashcat.exe"]

# =============================================
# PROGRESS BAR
# =============================================
def progress(it, **kw):
    return tqdm(it, disable=not sys.stdout.isatty(), **kw)

# =============================================
# FILE REPLACEMENT
# =============================================
def replace_file(path: Path, data: str):
    """
    Write data to a temporary file next to path, then swap it in.
    Until os.replace succeeds the previous content of path is untouched.
    """
    mode = path.stat().st_mode & 0o777 if path.exists() else 0o644
    tmp = tempfile.NamedTemporaryFile(
        "w", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False,
        encoding="utf-8", errors="surrogateescape", newline="\n",
    )
    try:
        with tmp:
            tmp.write(data)
        os.chmod(tmp.name, mode)
        os.replace(tmp.name, path)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise

# =============================================
# Errors
# =============================================
class HashcatError(Exception):
    """A single hashcat invocation failed. The campaign logs it and moves on."""


class EngineNotFoundError(Exception):
    """The hashcat binary cannot be located or started. Always fatal."""

# =============================================
# Logging
# =============================================
def setup_logging(level: str = "info", log_file: Optional[str] = None):
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    file_error = None
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            file_error = e
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
    )
    if file_error is not None:
        log.critical(f"Unable to open log file {log_file}: {file_error}")

def sigint_handler(signum, frame):
    log.warning("\nInterrupted by user - exiting cleanly")
    sys.exit(0)

# =============================================
# HASH TYPE DETECTION
# =============================================
# Ordered: NetNTLMv2 must be tried before NetNTLM
HASH_PATTERNS = [
    ("ntlm", "1000", re.compile(r'^[^:]+:[0-9]+:[a-fA-F0-9]{32}:[a-fA-F0-9]{32}:::$'), "NTLM (SAM format)"),
    ("net-ntlmv2", "5600", re.compile(r'^[a-zA-Z0-9]{1,32}:[a-fA-F0-9]{32}:[a-fA-F0-9]{128,}$'), "NetNTLMv2"),
    ("net-ntlm", "5500", re.compile(r'^[a-zA-Z0-9]{1,32}:[a-fA-F0-9]{32}:[a-fA-F0-9]{48,}$'), "NetNTLM"),
    ("krb5tgs$23", "13100", re.compile(r'^\$krb5tgs\$23\$'), "Kerberos 5 TGS-REP"),
    ("dcc2", "2100", re.compile(r'^\$DCC2\$[0-9]+#[^#]+#[a-fA-F0-9]{32}$'), "MS Cache v2"),
    ("md5", "0", re.compile(r'^[a-fA-F0-9]{32}$'), "MD5"),
    ("sha1", "100", re.compile(r'^[a-fA-F0-9]{40}$'), "SHA1"),
    ("sha256", "1400", re.compile(r'^[a-fA-F0-9]{64}$'), "SHA2-256"),
    ("sha512", "1700", re.compile(r'^[a-fA-F0-9]{128}$'), "SHA2-512"),
    ("mysql-sha1", "300", re.compile(r'^\*[a-fA-F0-9]{40}$'), "MySQL4.1/MySQL5 SHA1"),
]

HASH_ALIASES = {
    "ntlm": NTLM_MODE,
    "lm": LM_MODE,
    "net-ntlm": "5500",
    "netntlm": "5500",
    "net-ntlmv2": "5600",
    "netntlmv2": "5600",
    "krb5tgs$23": "13100",
    "dcc2": "2100",
}

def detect_hash_type(hash_file: Path) -> Tuple[str, str]:
    """Match the first non-empty line of the hash file, returns (name, mode)"""
    with hash_file.open("r", encoding="utf-8", errors="ignore") as f:
        for line in f:
            sample = line.strip()
            if sample:
                break
        else:
            raise ValueError(f"hash file {hash_file} is empty")

    for name, mode, regex, description in HASH_PATTERNS:
        if regex.match(sample):
            log.info(f"Detected hash type: {description} ({name})")
            return name, mode
    raise ValueError(f"unable to detect hash type of {hash_file}")

def resolve_hash_type(value: str, hash_file: Path) -> str:
    """
    Turn the --type argument into a hashcat mode.
    Accepts 'auto', a known alias or a numeric mode; anything else is fatal.
    """
    value = (value or "").strip()
    if value.lower() in ("", "auto"):
        _, mode = detect_hash_type(hash_file)
        return mode

    mode = HASH_ALIASES.get(value.lower())
    if mode is not None:
        log.info(f"Using hash type: {value} ({mode})")
        return mode

    if value.isdigit():
        log.info(f"Using hash type: {value}")
        return value
    raise ValueError(f"invalid hash type: {value}")

# =============================================
# CONFIGURATION
# =============================================
@dataclass(frozen=True)
class CampaignConfig:
    """Everything the campaign needs to know, built once in main() and never modified."""
    hashcat_bin: Path
    hash_file: Path
    hash_type: str
    potfile: Path
    rules_dir: Path
    dicts_dir: Path
    historical_dict: Path
    stats_file: Path
    custom_dict: Path
    rules: Tuple[Path, ...] = ()
    timeout: float = DEFAULT_TIMEOUT
    max_rounds: int = DEFAULT_MAX_ROUNDS

    @property
    def hashcat_dir(self) -> Path:
        return self.hashcat_bin.parent

    @property
    def best64_rule(self) -> Path:
        return self.rules_dir / BEST64_RULE

    @property
    def lm_available(self) -> bool:
        return self.hash_type in (NTLM_MODE, LM_MODE)

def locate_hashcat(explicit: Optional[str] = None) -> Path:
    if explicit:
        path = Path(explicit).expanduser()
        if path.is_file():
            return path.resolve()
        raise EngineNotFoundError(f"hashcat binary not found at {path}")

    windows = os.name == "nt"
    for name in (["hashcat.exe"] if windows else ["hashcat", "hashcat.bin"]):
        found = shutil.which(name)
        if found:
            return Path(found).resolve()

    candidates = WINDOWS_HASHCAT_PATHS if windows else POSIX_HASHCAT_PATHS
    for candidate in candidates:
        path = Path(candidate)
        if path.is_file():
            return path.resolve()
    raise EngineNotFoundError(f"hashcat not found in PATH nor in {', '.join(candidates)}")

def resolve_data_path(value: str, label: str, search_opt: bool = False) -> Path:
    """
    Resolve a data file/directory given on the command line.
    Relative paths are looked up in /opt (directories only), then the
    working directory, then next to the running script.
    """
    path = Path(value).expanduser()
    if path.is_absolute():
        return path

    if search_opt:
        opt_path = Path("/opt") / path
        if opt_path.exists():
            log.info(f"{label} found: {opt_path}")
            return opt_path

    if path.exists():
        path = path.resolve()
        log.info(f"{label} found: {path}")
        return path

    path = Path(sys.argv[0]).resolve().parent / path
    if path.exists():
        log.info(f"{label} found: {path}")
    else:
        log.warning(f"{label} ({path}) not found")
    return path

def discover_rules(rules_dir: Path) -> Tuple[Path, ...]:
    if not rules_dir.is_dir():
        log.warning(f"Rules directory ({rules_dir}) not found")
        return ()
    return tuple(sorted(rules_dir.glob(RULE_GLOB)))

def discover_dictionaries(dicts_dir: Path) -> List[Path]:
    if not dicts_dir.is_dir():
        return []
    return sorted(p for p in dicts_dir.glob(DICT_GLOB) if p.is_file())

def build_config(args: argparse.Namespace) -> CampaignConfig:
    hashcat_bin = locate_hashcat(args.hashcat)
    log.info(f"Hashcat found at {hashcat_bin}")

    hash_file = Path(args.hashes).expanduser()
    if not hash_file.is_file():
        raise FileNotFoundError(f"Hash file not found: {hash_file}")
    hash_file = hash_file.resolve()
    with hash_file.open("rb"):
        pass
    log.info(f"Hash file: {hash_file}")
    hash_type = resolve_hash_type(args.type, hash_file)

    custom_dict = hash_file.with_name(hash_file.name + ".dict")
    log.info(f"Custom dictionary: {custom_dict}")

    hashcat_dir = hashcat_bin.parent
    potfile = Path(args.potfile).expanduser().resolve() if args.potfile else hashcat_dir / "hashcat.potfile"
    log.info(f"Potfile: {potfile}")

    rules_dir = Path(args.rules).expanduser().resolve() if args.rules else hashcat_dir / "rules"
    log.info(f"Rules directory: {rules_dir}")
    rules = discover_rules(rules_dir)
    log.info(f"Rules: {', '.join(r.name for r in rules) or '(none)'}")

    return CampaignConfig(
        hashcat_bin=hashcat_bin,
        hash_file=hash_file,
        hash_type=hash_type,
        potfile=potfile,
        rules_dir=rules_dir,
        dicts_dir=resolve_data_path(args.dicts, "Dictionary path", search_opt=True),
        historical_dict=resolve_data_path(args.historical, "Historical dictionary"),
        stats_file=resolve_data_path(args.dict_stats, "Dictionaries stats"),
        custom_dict=custom_dict,
        rules=rules,
        timeout=args.timeout,
        max_rounds=args.max_rounds,
    )

# =============================================
# HASHCAT RUNNER
# =============================================
class HashcatRunner:
    """
    Launches hashcat, one process at a time.
    Every invocation gets its own session name so it never collides with
    another hashcat running on the same machine; the session files are
    removed once the process exits.
    """

    def __init__(self, config: CampaignConfig):
        self.config = config
        self.phase = ""

    def _cwd(self) -> Optional[Path]:
        # hashcat.exe only finds its OpenCL kernels from its own folder
        return self.config.hashcat_dir if os.name == "nt" else None

    def _cleanup_session(self, session: str):
        log.debug(f"Cleaning up hashcat session {session}")
        for folder in (self.config.hashcat_dir, self.config.hashcat_dir / "sessions"):
            for leftover in folder.glob(f"{session}*"):
                try:
                    if leftover.is_dir():
                        shutil.rmtree(leftover)
                    else:
                        leftover.unlink()
                    log.debug(f"Removed hashcat session file {leftover}")
                except OSError as e:
                    log.warning(f"Could not remove session file {leftover}: {e}")

    def run(self, attack_args: Sequence[str], hash_type: Optional[str] = None):
        cfg = self.config
        session = f"Session_{secrets.token_hex(8)}"
        args = [
            str(cfg.hashcat_bin), f"--session={session}", "-O", "--force", "-w", "4",
            f"--potfile-path={cfg.potfile}", "-m", hash_type or cfg.hash_type, str(cfg.hash_file),
            *attack_args,
        ]
        log.info("*" * 80)
        log.info(f"Running hashcat phase {self.phase} with {' '.join(args[1:])}")
        try:
            proc = subprocess.run(args, cwd=self._cwd())
        except FileNotFoundError as e:
            raise EngineNotFoundError(f"unable to start {cfg.hashcat_bin}: {e}") from e
        except OSError as e:
            raise HashcatError(f"unable to start {cfg.hashcat_bin}: {e}") from e
        finally:
            self._cleanup_session(session)

        if proc.returncode not in TOLERATED_EXIT_CODES:
            raise HashcatError(f"hashcat exited with status {proc.returncode} during '{self.phase}'")

    def brute_force(self, mask: Optional[str], increment: Optional[Tuple[int, int]] = None,
                    hash_type: Optional[str] = None):
        args = ["-a", "3"]
        if mask:
            args.append(mask)
        if increment:
            low, high = increment
            args += ["--increment", "--increment-min", str(low), "--increment-max", str(high)]
        self.run(args, hash_type=hash_type)

    def dictionary(self, dictionary: Path, rules: Sequence[Path] = (), loopback: bool = False):
        args = ["-a", "0", str(dictionary)]
        for rule in rules:
            args += ["-r", str(rule)]
        if loopback:
            args.append("--loopback")
        self.run(args)

    def show(self) -> List[str]:
        """List the plaintexts hashcat already recovered for the hash file, one per line."""
        cfg = self.config
        args = [
            str(cfg.hashcat_bin), "--show", "--outfile-format=2",
            f"--potfile-path={cfg.potfile}", "-m", cfg.hash_type, str(cfg.hash_file),
        ]
        log.debug(f"Running {' '.join(args)}")
        try:
            proc = subprocess.run(args, cwd=self._cwd(), capture_output=True)
        except OSError as e:
            raise HashcatError(f"unable to start {cfg.hashcat_bin} --show: {e}") from e
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise HashcatError(f"hashcat --show exited with status {proc.returncode}: {stderr}")
        return proc.stdout.decode("utf-8", errors="surrogateescape").splitlines()

# =============================================
# CREDENTIAL STORE
# =============================================
class CredentialStore:
    """
    Owns the two wordlists fed back into hashcat:
    - the custom dictionary: every password recovered for the current hash file
    - the historical dictionary: every password ever recovered, across campaigns
    Both are sorted, deduplicated and rewritten in full.
    """

    def __init__(self, historical_dict: Path, custom_dict: Path):
        self.historical_dict = historical_dict
        self.custom_dict = custom_dict

    @staticmethod
    def merge_unique(items: Iterable[str]) -> List[str]:
        return sorted({item for item in items if item})

    @staticmethod
    def read_lines(path: Path) -> List[str]:
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            return [line.rstrip("\r\n") for line in progress(f, desc=path.name[:30], leave=False)]

    @staticmethod
    def write_lines(path: Path, items: List[str]):
        replace_file(path, "\n".join(items) + "\n" if items else "")

    def write_custom(self, credentials: Iterable[str]) -> List[str]:
        unique = self.merge_unique(credentials)
        self.write_lines(self.custom_dict, unique)
        log.info(f" → {self.custom_dict.name} ({len(unique):,} passwords)")
        return unique

    def merge_historical(self, credentials: Iterable[str]) -> int:
        log.info(f"Updating historical dictionary ({self.historical_dict}) with new passwords")
        merged = self.merge_unique([*self.read_lines(self.historical_dict), *credentials])
        self.write_lines(self.historical_dict, merged)
        return len(merged)

# =============================================
# POTFILE EXTRACTOR
# =============================================
class PotfileExtractor:
    """
    Turns the hashcat potfile into the custom and historical dictionaries.

    The potfile size is the watermark: while it does not move, extract()
    returns the last count without running hashcat --show again.
    `failed` tells whether the last call could not measure anything; `found`
    always holds the last successful count.
    """

    def __init__(self, config: CampaignConfig, runner: HashcatRunner, store: CredentialStore):
        self.config = config
        self.runner = runner
        self.store = store
        self.watermark: Optional[int] = None
        self.found = 0
        self.failed = False

    def extract(self) -> int:
        """Returns how many unique passwords are recovered so far (0 on failure)."""
        self.failed = True
        log.info(f"Generate custom dict ({self.config.custom_dict}) from potfile...")
        try:
            size = self.config.potfile.stat().st_size
        except OSError as e:
            log.error(f"Error getting potfile size ({self.config.potfile}): {e}")
            return 0

        if size == self.watermark:
            log.info("Potfile size didn't change, skipping custom dict generation")
            self.failed = False
            return self.found
        self.watermark = size

        try:
            rows = self.runner.show()
        except HashcatError as e:
            log.error(f"Error running hashcat --show: {e}")
            return 0

        credentials = [row for row in rows if row and row != NOT_FOUND_SENTINEL]
        try:
            unique = self.store.write_custom(credentials)
            total = self.store.merge_historical(unique)
        except OSError as e:
            log.error(f"Error writing recovered passwords: {e}")
            return 0

        self.found = len(unique)
        self.failed = False
        log.info(f"Found {self.found:,} passwords for {self.config.hash_file.name}")
        log.info(f"Historical dictionary ({self.store.historical_dict}) contains {total:,} passwords")
        return self.found

# =============================================
# DICTIONARY RANKING
# =============================================
class DictRanking:
    """
    Cumulative score per dictionary name, persisted as a flat JSON object.

    Keys are base names, so the same dictionary found in two folders shares
    one entry. Scores only ever grow.
    """

    def __init__(self, stats_file: Path, dicts_dir: Path, rank: Optional[Dict[str, int]] = None):
        self.stats_file = stats_file
        self.dicts_dir = dicts_dir
        self.rank: Dict[str, int] = dict(rank or {})

    @classmethod
    def load(cls, stats_file: Path, dicts_dir: Path) -> "DictRanking":
        rank: Dict[str, int] = {}
        if not stats_file.exists():
            return cls(stats_file, dicts_dir, rank)

        try:
            data = json.loads(stats_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning(f"Error reading dict stats file, starting with empty stats: {e}")
            return cls(stats_file, dicts_dir, rank)

        if not isinstance(data, dict):
            log.warning(f"Dict stats file {stats_file} is not a JSON object, starting with empty stats")
            return cls(stats_file, dicts_dir, rank)

        for name, score in data.items():
            if isinstance(score, int) and not isinstance(score, bool) and score >= 0:
                rank[name] = score
            else:
                log.warning(f"Ignoring invalid score {score!r} for {name} in {stats_file.name}")
        return cls(stats_file, dicts_dir, rank)

    def rank_dictionaries(self, candidates: Iterable[Path]) -> List[Path]:
        """Best dictionaries first; equal scores keep the order they were first seen in."""
        wanted = set()
        discovered = False
        for path in candidates:
            name = Path(path).name
            if name not in self.rank:
                self.rank[name] = 0
                discovered = True
            wanted.add(name)
        if discovered:
            self._save_logged()

        ordered = sorted((name for name in self.rank if name in wanted), key=lambda name: -self.rank[name])
        return [self.dicts_dir / name for name in ordered]

    def update_stats(self, dictionary: Path, found: int):
        name = Path(dictionary).name
        log.info(f"Found {found} new passwords via dict {name}")
        self.rank[name] = self.rank.get(name, 0) + found
        self._save_logged()

    def _save_logged(self):
        try:
            self.save()
        except OSError as e:
            log.error(f"Unable to save dictionary stats to {self.stats_file}: {e}")

    def save(self):
        replace_file(self.stats_file, json.dumps(self.rank, indent=2) + "\n")

    def ranking_report(self, candidates: Iterable[Path]) -> List[Path]:
        ranked = self.rank_dictionaries(candidates)
        log.info("Dictionary Ranking:")
        for idx, path in enumerate(ranked, 1):
            log.info(f"{idx:2d}. | {self.rank[path.name]:05d} | {path.name}")
        return ranked

# =============================================
# KNOWLEDGE LOOP
# =============================================
class KnowledgeLoop:
    """
    Replays every rule on one dictionary until a full sweep recovers nothing.

    Passwords found during a sweep land in the custom/historical
    dictionaries, so the next sweep over those dictionaries has new input.
    """

    def __init__(self, config: CampaignConfig, runner: HashcatRunner, extractor: PotfileExtractor):
        self.config = config
        self.runner = runner
        self.extractor = extractor

    def converge(self, dictionary: Path):
        log.info("*" * 80)
        log.info(f"Starting {dictionary} phase ...")
        self.runner.phase = f"Knowledge phase {dictionary.name}"

        found = self.extractor.extract()
        if found == 0:
            log.info(f"No passwords found, skipping knowledge phase on {dictionary.name}")
            return

        rounds = 0
        while True:
            rounds += 1
            for rule in self.config.rules:
                log.info(f"Applying rule: {rule.name} with {dictionary} (round {rounds})")
                try:
                    self.runner.dictionary(dictionary, rules=[rule])
                except HashcatError as e:
                    log.error(f"Error running hashcat with rule {rule}: {e}")

            current = self.extractor.extract()
            if current <= found:
                log.info(f"Knowledge phase on {dictionary.name} converged after {rounds} round(s)")
                return
            found = current

            if self.config.max_rounds and rounds >= self.config.max_rounds:
                log.warning(f"Knowledge phase on {dictionary.name} stopped after {rounds} rounds "
                            f"while still finding passwords (--max-rounds)")
                return
            log.info("Found new passwords! Trying rules again...")

# =============================================
# CONFIRMATION PROMPT
# =============================================
class ConfirmationPrompt:
    """
    Yes/no question that answers itself after a timeout.

    stdin cannot be interrupted, so a reader left behind by a timeout keeps
    waiting in a daemon thread; whatever it reads before the next question
    is discarded.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, stream=None, assume_yes: bool = False):
        self.timeout = timeout
        self.stream = stream
        self.assume_yes = assume_yes
        self._answers: "queue.Queue[str]" = queue.Queue()
        self._reader: Optional[threading.Thread] = None

    def _read_line(self):
        stream = self.stream if self.stream is not None else sys.stdin
        try:
            line = stream.readline()
        except (OSError, ValueError) as e:
            log.debug(f"Confirmation read failed: {e}")
            line = ""
        self._answers.put(line)

    def ask(self, message: str) -> Tuple[bool, bool]:
        """Returns (answer, timed_out)."""
        if self.assume_yes:
            log.info(f"{message} [auto: Y]")
            return True, False

        print(f"{message} [Y/n] (default Y in {self.timeout:g}s): ", end="", flush=True)
        while True:
            try:
                self._answers.get_nowait()
            except queue.Empty:
                break
        if self._reader is None or not self._reader.is_alive():
            self._reader = threading.Thread(target=self._read_line, name="confirmation-reader", daemon=True)
            self._reader.start()

        try:
            line = self._answers.get(timeout=self.timeout)
        except queue.Empty:
            print(flush=True)
            log.info("Timeout - proceeding with default (Y)")
            return True, True

        answer = line.strip().lower()
        return answer in ("", "y", "yes"), False

# =============================================
# CAMPAIGN
# =============================================
PHASES = [
    ("LM", "LM Attack first"),
    ("1", "Historical dictionary"),
    ("2", "Custom dictionary"),
    ("3", "Dictionaries"),
    ("4", "Brute force password with len=8 with automask"),
    ("5", "Brute force password with len=8"),
    ("6", "Rules stacking with best64 rule on Historical Dict"),
    ("7", "Rules stacking with best64 rule on all dico"),
]

class Campaign:
    def __init__(self, config: CampaignConfig, runner: HashcatRunner, extractor: PotfileExtractor,
                 ranking: DictRanking, loop: KnowledgeLoop, prompt: ConfirmationPrompt):
        self.config = config
        self.runner = runner
        self.extractor = extractor
        self.ranking = ranking
        self.loop = loop
        self.prompt = prompt
        self.handlers = {
            "LM": self.phase_lm,
            "1": self.phase_historical,
            "2": self.phase_custom,
            "3": self.phase_dictionaries,
            "4": self.phase_automask,
            "5": self.phase_brute_force,
            "6": self.phase_stacking_historical,
            "7": self.phase_stacking_all,
        }

    # -------------------------------
    # Phase selection
    # -------------------------------
    def available_phases(self) -> List[str]:
        return [pid for pid, _ in PHASES if pid != "LM" or self.config.lm_available]

    def parse_order(self, text: str) -> List[str]:
        available = self.available_phases()
        if not text or not text.strip():
            return available

        order = []
        for token in text.split(","):
            pid = token.strip().upper()
            if not pid:
                continue
            if pid not in available:
                log.warning(f"Unknown phase '{token.strip()}', ignored")
                continue
            order.append(pid)
        return order

    def choose_order(self, order_text: Optional[str] = None) -> List[str]:
        if order_text is None:
            print("Choose the order of attack:")
            for pid, label in PHASES:
                if pid in self.available_phases():
                    print(f"{pid}. {label}")
            default = ",".join(self.available_phases())
            try:
                order_text = input(f"Enter your choice (default: {default}): ")
            except EOFError:
                order_text = ""
        return self.parse_order(order_text)

    def run(self, order: Sequence[str]):
        log.info(f"Attack order: {','.join(order)}")
        for pid in order:
            self.handlers[pid]()
        log.info("Campaign finished")

    # -------------------------------
    # Helpers
    # -------------------------------
    def _confirm(self, message: str) -> bool:
        answer, _ = self.prompt.ask(message)
        if not answer:
            log.info(f"Skipped: {message}")
        return answer

    def _dictionaries(self) -> List[Path]:
        dicts = discover_dictionaries(self.config.dicts_dir)
        if not dicts:
            log.critical(f"No dictionaries found in {self.config.dicts_dir}")
        return dicts

    def _best64(self) -> Optional[Path]:
        best64 = self.config.best64_rule
        if not best64.is_file():
            log.critical(f"{BEST64_RULE} not found in {self.config.rules_dir}")
            return None
        return best64

    def _baseline(self) -> Optional[int]:
        found = self.extractor.extract()
        return None if self.extractor.failed else found

    def _record(self, dictionary: Path, before: Optional[int]) -> Optional[int]:
        """Credit dictionary with the passwords found since before; None means unknown."""
        after = self.extractor.extract()
        if self.extractor.failed:
            log.warning(f"Could not count passwords found via {dictionary.name}, stats left unchanged")
            return before
        if before is None:
            log.warning(f"No baseline for {dictionary.name}, stats left unchanged")
            return after
        self.ranking.update_stats(dictionary, max(0, after - before))
        return after

    # -------------------------------
    # Phases
    # -------------------------------
    def phase_lm(self):
        if not self._confirm("Audit LM hashes first?"):
            return
        self.runner.phase = "Audit LM hashes"
        log.info("Running hashcat with LM hashes audit")
        for mask, increment in LM_ATTACKS:
            try:
                self.runner.brute_force(mask, increment=increment, hash_type=LM_MODE)
            except HashcatError as e:
                log.error(f"Error running hashcat with LM hashes ({mask}): {e}")

    def phase_historical(self):
        if self._confirm("Start hashcat on Historical dictionary?"):
            self.loop.converge(self.config.historical_dict)

    def phase_custom(self):
        if self._confirm("Start hashcat on Custom dictionary?"):
            self.loop.converge(self.config.custom_dict)

    def phase_dictionaries(self):
        dicts = self._dictionaries()
        if not dicts or not self._confirm(f"Start hashcat on {len(dicts)} dictionaries?"):
            return

        rules = self.config.rules
        ranked = self.ranking.ranking_report(dicts)
        for idx, dictionary in enumerate(ranked, 1):
            if not self._confirm(f"Start hashcat on dictionary {dictionary} ?"):
                continue
            self.runner.phase = f"Dictionary phase {idx}/{len(ranked)} {dictionary.name}"
            found = self._baseline()
            log.info(f"Running hashcat with dictionary ({dictionary}) and no rule")
            try:
                self.runner.dictionary(dictionary)
            except HashcatError as e:
                log.error(f"Error running hashcat with dictionary {dictionary}: {e}")
                continue
            found = self._record(dictionary, found)

            for ridx, rule in enumerate(rules, 1):
                self.runner.phase = (f"Dictionary phase {idx}/{len(ranked)} {dictionary.name}, "
                                     f"with rule {ridx}/{len(rules)} {rule.name}")
                log.info(f"Running hashcat with dictionary ({dictionary}) and rule ({rule})")
                try:
                    self.runner.dictionary(dictionary, rules=[rule])
                except HashcatError as e:
                    log.error(f"Error running hashcat with dictionary {dictionary} and rule {rule}: {e}")
                    continue
                found = self._record(dictionary, found)

        self.loop.converge(self.config.custom_dict)

    def phase_automask(self):
        if not self._confirm("Brute force password with len=8 with automask"):
            return
        self.runner.phase = "Brute force password with len=8 with automask"
        try:
            self.runner.brute_force(None, increment=AUTOMASK_INCREMENT)
        except HashcatError as e:
            log.error(f"Error running hashcat with automask: {e}")

    def phase_brute_force(self):
        if not self._confirm("Brute force password with len=8"):
            return
        self.runner.phase = "Brute force password with len=8"
        try:
            self.runner.brute_force(BRUTE_FORCE_MASK)
        except HashcatError as e:
            log.error(f"Error running hashcat with len=8: {e}")

    def _stack_rules(self, dictionary: Path, best64: Path):
        for rule in self.config.rules:
            self.runner.phase = (f"Rules stacking with best64 rule on {dictionary.name} "
                                 f"with rule {rule.name}")
            log.info(f"Using {dictionary.name} as dico with rule {rule.name} + {BEST64_RULE}")
            try:
                self.runner.dictionary(dictionary, rules=[rule, best64], loopback=True)
            except HashcatError as e:
                log.error(f"Error running hashcat with rule {rule} on {dictionary}: {e}")

    def phase_stacking_historical(self):
        if not self._confirm("Rules stacking with best64 rule on Historical Dict"):
            return
        best64 = self._best64()
        if best64 is not None:
            self._stack_rules(self.config.historical_dict, best64)

    def phase_stacking_all(self):
        if not self._confirm("Rules stacking with best64 rule on all dico"):
            return
        best64 = self._best64()
        if best64 is None:
            return
        dicts = self._dictionaries()
        for dictionary in self.ranking.rank_dictionaries(dicts):
            self._stack_rules(dictionary, best64)

# =============================================
# CLI
# =============================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HashPilot - Hashcat Campaign Controller")
    parser.add_argument("--hashes", required=True, help="Path to the hash file")
    parser.add_argument("--type", default="auto",
                        help="Hash type (auto, ntlm, lm, net-ntlm, net-ntlmv2, krb5tgs$23, dcc2, or numeric mode)")
    parser.add_argument("--rules", default=None, help="Rules directory (default: <hashcat dir>/rules)")
    parser.add_argument("--dicts", default="dico", help="Dictionaries directory")
    parser.add_argument("--historical", default="pownMyHash.dico", help="Historical dictionary")
    parser.add_argument("--dict-stats", default="dict-stats.json", help="Dictionary statistics file")
    parser.add_argument("--hashcat", default=None, help="Path to the hashcat binary (default: search)")
    parser.add_argument("--potfile", default=None, help="Potfile (default: <hashcat dir>/hashcat.potfile)")
    parser.add_argument("--order", default=None, help="Comma-separated phase order, e.g. LM,1,3,5")
    parser.add_argument("-y", "--yes", action="store_true", help="Answer yes to every confirmation")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help=f"Seconds before a confirmation defaults to yes (default: {DEFAULT_TIMEOUT:g})")
    parser.add_argument("--max-rounds", type=int, default=DEFAULT_MAX_ROUNDS,
                        help=f"Max rule sweeps per knowledge phase, 0 for no limit (default: {DEFAULT_MAX_ROUNDS})")
    parser.add_argument("--log-level", default="info",
                        choices=["debug", "info", "warning", "error", "critical"], help="Logging level")
    parser.add_argument("--log-file", default=None, help="Also append logs to this file")
    return parser

def fatal(message: str):
    log.critical(message)
    log.critical("This program cannot continue and will now exit.")
    sys.exit(1)

def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.timeout <= 0:
        parser.error("--timeout must be positive")
    if args.max_rounds < 0:
        parser.error("--max-rounds must be 0 or more")

    setup_logging(args.log_level, args.log_file)
    signal.signal(signal.SIGINT, sigint_handler)

    try:
        config = build_config(args)
    except EngineNotFoundError as e:
        fatal(f"Unable to find hashcat: {e}")
    except (OSError, ValueError) as e:
        fatal(str(e))

    runner = HashcatRunner(config)
    store = CredentialStore(config.historical_dict, config.custom_dict)
    extractor = PotfileExtractor(config, runner, store)
    ranking = DictRanking.load(config.stats_file, config.dicts_dir)
    loop = KnowledgeLoop(config, runner, extractor)
    prompt = ConfirmationPrompt(timeout=config.timeout, assume_yes=args.yes)
    campaign = Campaign(config, runner, extractor, ranking, loop, prompt)

    order = campaign.choose_order(args.order)
    try:
        campaign.run(order)
    except EngineNotFoundError as e:
        fatal(str(e))

if __name__ == "__main__":
    main()
