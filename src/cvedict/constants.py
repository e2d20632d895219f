#!/usr/bin/env python3
"""
Centralized constants for the cve-dictionaries project.

This module contains the fixed taxonomy tables, display names, keyword
buckets and network defaults used throughout the codebase.
"""

# Document discovery
CVE_JSON_FILENAME = "cve.json"

# Taxonomy (values are compared case-insensitively)
PRODUCT_TAXONOMY = frozenset(
    {
        "dotnet-runtime",
        "dotnet-aspnetcore",
        "dotnet-windows-desktop",
        "dotnet-sdk",
    }
)
PLATFORM_TAXONOMY = frozenset({"linux", "macos", "windows", "all"})
ARCHITECTURE_TAXONOMY = frozenset({"arm", "arm64", "x64", "x86", "all"})
SEVERITY_TAXONOMY = frozenset({"critical", "high", "medium", "low"})
CNA_TAXONOMY = frozenset({"microsoft"})

DEFAULT_CNA_NAME = "microsoft"

# Product display names; includes legacy identifiers still present in older files
PRODUCT_DISPLAY_NAMES = {
    "dotnet-runtime": ".NET Runtime Libraries",
    "dotnet-runtime-libraries": ".NET Runtime Libraries",
    "dotnet-aspnetcore": "ASP.NET Core Runtime",
    "dotnet-runtime-aspnetcore": "ASP.NET Core Runtime",
    "aspnetcore-runtime": "ASP.NET Core Runtime",
    "dotnet-windows-desktop": ".NET Windows Desktop Runtime",
    "dotnet-sdk": ".NET SDK",
}

# Problem category phrase -> terms expected somewhere in the description.
# Order matters: the first phrase found in the problem text wins.
PROBLEM_KEYWORDS: dict[str, tuple[str, ...]] = {
    "denial of service": (
        "denial of service",
        "dos",
        "hang",
        "crash",
        "exhaust",
        "consum",
        "infinite",
        "unresponsive",
        "stack overflow",
        "out of memory",
        "resource",
    ),
    "remote code execution": (
        "remote code execution",
        "execute",
        "execution",
        "arbitrary code",
        "rce",
    ),
    "elevation of privilege": (
        "elevation of privilege",
        "elevate",
        "privilege",
        "escalat",
    ),
    "information disclosure": (
        "information disclosure",
        "disclos",
        "leak",
        "expose",
        "exposure",
        "sensitive",
    ),
    "security feature bypass": (
        "security feature bypass",
        "bypass",
        "circumvent",
    ),
    "spoofing": ("spoof", "impersonat", "forge", "forgery"),
    "tampering": ("tamper", "modify", "alter"),
}

DEPRECATED_TERMS = {"mitm": "adversary-in-the-middle"}

# CVSS severity thresholds (lower bound inclusive)
CVSS_SEVERITY_THRESHOLDS = (
    (9.0, "critical"),
    (7.0, "high"),
    (4.0, "medium"),
)

# External sources
MSRC_BASE_URL = "https://api.msrc.microsoft.com"
NVD_API_BASE_URL = "https://services.nvd.nist.gov/rest/json/cves/2.0"
NUGET_FLAT_CONTAINER_URL = "https://api.nuget.org/v3-flatcontainer"
CVRF_VULN_NAMESPACE = "http://www.icasi.org/CVRF/schema/vuln/1.1"
USER_AGENT = "cve-dictionaries/1.0"

# Network defaults (overridable via utils.config)
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_MAX_CONCURRENCY = 16

# NVD courtesy pacing between successive requests (seconds)
NVD_DELAY_NO_KEY = 6.0
NVD_DELAY_WITH_KEY = 0.6

# Logging
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

# Status Messages
STATUS_ICONS = {
    "success": "✓",
    "error": "✗",
    "advisory": "⚠",
    "context": "·",
}
