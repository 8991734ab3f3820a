"""Centralized user-facing text for the blobtrace CLI."""

from __future__ import annotations


class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "blobtrace – find the git commits that contain a blob, or the commit a source tree came from."
    HELP_FIND = (
        "Index REPOSITORY, then either answer blob lookups from stdin (one id per line) "
        "or, when TREE is given, print the commit that best matches TREE."
    )
    HELP_REPOSITORY = "Path to the git repository to index."
    HELP_TREE = "Directory whose file contents should be matched against the history."
    HELP_HEAD_ONLY = "Only walk commits reachable from HEAD instead of all branch and remote tips."
    HELP_CACHE_PATH = "Load the index from this file when present; write it back after a fresh build."
    HELP_NO_COMPACT = "Keep the uncompacted index (same results, more memory, faster build)."
    HELP_CACHE_POLICY = "How to treat an existing cache file: verify, trust or rebuild."
    HELP_THREADS = "Number of worker threads used to flatten commit trees."
    HELP_MIN_SCORE = "Minimum fraction of matched files (0-1) required to report a commit."
    HELP_TOP = "Number of candidate commits shown with --format rich."
    HELP_FORMAT = "Output format for tree matching: porcelain (commit id only) or rich (table)."
    HELP_QUIET = "Suppress progress and informational messages on stderr."
    HELP_VERSION = "Show the blobtrace version and exit."
    HELP_CONFIG = "Manage blobtrace configuration stored in ~/.blobtrace/config.json."
    HELP_SET_MIN_SCORE = "Set the default minimum match score (0-1)."
    HELP_SET_THREADS = "Set the default number of flattening threads."
    HELP_SET_CACHE_POLICY = "Set the default cache policy (verify, trust, rebuild)."
    HELP_SET_TIE_BREAK = "Set the tie-break order as a comma separated list of {allowed}."
    HELP_SET_TREE_CACHE = "Set how many flattened subtrees are memoised during a build (0 disables)."
    HELP_SHOW_CONFIG = "Show current configuration."

    ERROR_OBJECT_ID_INVALID = "Invalid object id {value!r}: expected {width} hexadecimal characters."
    ERROR_LINE_INVALID = "Line {line}: {reason}"
    ERROR_EMPTY_QUERY = "Nothing to match: {path} contains no files."
    ERROR_EMPTY_QUERY_SET = "Nothing to match: the query content set is empty."
    ERROR_NOT_A_REPOSITORY = "Not a git repository: {path}"
    ERROR_OBJECT_MISSING = "Object {oid} is missing from the object store."
    ERROR_OBJECT_CORRUPT = "Object {oid} could not be read: {reason}"
    ERROR_OBJECT_TYPE = "Object {oid} is a {actual}, expected a {expected}."
    ERROR_HEAD_MISSING = "HEAD does not point to a commit; nothing to walk."
    ERROR_REF_UNREADABLE = "Reference {ref} could not be resolved: {reason}"
    ERROR_CACHE_MISSING = "No index cache found at {path}."
    ERROR_CACHE_UNREADABLE = "Index cache {path} could not be read: {reason}"
    ERROR_CACHE_VERSION = (
        "Index cache {path} has format version {found}; this blobtrace expects {expected}."
    )
    ERROR_CACHE_MAGIC = "{path} is not a blobtrace index cache."
    ERROR_CACHE_WRITE = "Index cache {path} could not be written: {reason}"
    ERROR_DIRECTORY_MISSING = "Directory does not exist: {path}"
    ERROR_NOT_A_DIRECTORY = "Path is not a directory: {path}"
    ERROR_MIN_SCORE_RANGE = "Minimum score must be between 0 and 1, got {value}."
    ERROR_THREADS_INVALID = "Thread count must be at least 1."
    ERROR_TOP_INVALID = "--top must be at least 1."
    ERROR_TREE_CACHE_INVALID = "Tree cache size must be >= 0."
    ERROR_CACHE_POLICY_INVALID = "Unsupported cache policy {value!r}; use one of: {allowed}."
    ERROR_TIE_BREAK_INVALID = "Unsupported tie-break {value!r}; use one of: {allowed}."
    ERROR_CONFIG_JSON_INVALID = "Config JSON must be an object."
    ERROR_CONFIG_VALUE_INVALID = "Invalid config value for {field}."

    WARNING_NO_BRANCH_TIPS = (
        "No branch or remote tips found - walking HEAD instead to avoid an empty traversal."
    )
    WARNING_CACHE_STALE = (
        "Index cache {path} was built from different starting refs; rebuilding."
    )
    INFO_CACHE_LOADED = "Loaded index cache from {path} (built {generated_at})."
    INFO_CACHE_SAVED = "Index cache saved to {path}."
    INFO_WALKING = "Walking commits in {path}..."
    INFO_PROGRESS_COMMITS = "Indexing commits"
    INFO_PROGRESS_HASHING = "Hashing files"
    INFO_READY = (
        "READY: indexed {commits} commits with {blobs} blobs and {references} references "
        "in {postings} posting lists ({unique} unique)."
    )
    INFO_WAITING = "Waiting for input..."
    INFO_SERVED = "Answered {count} lookup{plural}."
    INFO_NO_MATCH = "No commit shares content with {path}."
    INFO_BELOW_THRESHOLD = (
        "Best candidate {commit} matched {hits}/{total} files ({score:.1%}), below the "
        "minimum score {minimum:.1%}."
    )
    INFO_MATCH = "Best match {commit}: {hits}/{total} files ({score:.1%})."
    INFO_CONFIG_SUMMARY = (
        "Minimum score: {min_score}\n"
        "Tie-break order: {tie_break}\n"
        "Threads: {threads}\n"
        "Cache policy: {cache_policy}\n"
        "Tree cache entries: {tree_cache_entries}"
    )
    INFO_MIN_SCORE_SET = "Default minimum score set to {value}."
    INFO_THREADS_SET = "Default thread count set to {value}."
    INFO_CACHE_POLICY_SET = "Default cache policy set to {value}."
    INFO_TIE_BREAK_SET = "Tie-break order set to {value}."
    INFO_TREE_CACHE_SET = "Tree cache size set to {value}."

    NO_MATCH_INDICATOR = "no-match"

    TABLE_TITLE = "Candidate commits for {path}"
    TABLE_HEADER_INDEX = "#"
    TABLE_HEADER_COMMIT = "Commit"
    TABLE_HEADER_SCORE = "Score"
    TABLE_HEADER_HITS = "Matched"
    TABLE_HEADER_SNAPSHOT = "Snapshot blobs"
