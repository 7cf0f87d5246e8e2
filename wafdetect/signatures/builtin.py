"""
Built-in WAF signatures.

Each vendor rule inspects every healthy probe and adds weighted evidence:
distinguishing headers score 0.15-0.45, vendor cookies 0.25-0.45 and body
markers 0.2-0.4. A rule with fewer than two distinct indicators has its total
halved, so one stray header never yields a confident vendor claim.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import List

from wafdetect.core.model import ProbeResult, ProbeSet, healthy_probes

from .base import Evidence, Signature


def _has(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)


class VendorSignature(Signature):
    """Hand-written signature scored by summing `inspect` hits over all probes."""

    def __init__(self, min_indicators: int = 2, discount: float = 0.5):
        self.min_indicators = min_indicators
        self.discount = discount

    def match(self, probes: ProbeSet) -> float:
        evidence = Evidence()
        for probe in healthy_probes(probes):
            self.inspect(probe, evidence)
        return evidence.score(self.min_indicators, self.discount)

    @abstractmethod
    def inspect(self, probe: ProbeResult, evidence: Evidence) -> None:
        """Add the evidence one probe carries for this vendor."""
        ...


class CloudflareSignature(VendorSignature):
    name = "Cloudflare"

    def inspect(self, probe, evidence):
        server = probe.header("server").lower()
        body = probe.body.lower()
        cookies = probe.cookies()

        # Strong indicators
        if probe.header("cf-ray"):
            evidence.add("cf-ray", 0.35)
        if probe.header("cf-cache-status"):
            evidence.add("cf-cache-status", 0.25)
        if probe.header("cf-request-id"):
            evidence.add("cf-request-id", 0.2)
        if "cloudflare" in server:
            evidence.add("server", 0.3)
        if _has(cookies, "__cfduid", "cf_clearance", "__cf_bm"):
            evidence.add("cookie", 0.25)

        # Block and challenge pages
        if probe.status_code in (403, 503) and _has(body, "attention required", "cloudflare", "ray id:", "cf-ray"):
            evidence.add("block-page", 0.3)
        if _has(body, "checking your browser", "ddos protection by cloudflare"):
            evidence.add("challenge-page", 0.25)

        if probe.header("cf-team") or probe.header("cf-railgun") or probe.header("expect-ct"):
            evidence.add("aux-headers", 0.15)


class AWSWAFSignature(VendorSignature):
    name = "AWS WAF"

    def inspect(self, probe, evidence):
        server = probe.header("server").lower()
        body = probe.body.lower()

        if (probe.header("x-amz-id") or probe.header("x-amz-request-id")
                or probe.header("x-amzn-requestid") or probe.header("x-amzn-trace-id")):
            evidence.add("request-id", 0.35)
        if probe.header("x-amz-cf-id") or probe.header("x-amz-cf-pop"):
            evidence.add("cloudfront-id", 0.3)
        if _has(server, "awselb", "aws", "amazon"):
            evidence.add("server", 0.25)
        if "aws-waf-token" in probe.cookies():
            evidence.add("cookie", 0.3)

        if probe.status_code == 403:
            if _has(body, "request blocked", "aws waf", "requestid"):
                evidence.add("block-page", 0.3)
            if "<title>403 forbidden</title>" in body and "aws" in body:
                evidence.add("forbidden-page", 0.25)

        if "aws waf" in body:
            evidence.add("body", 0.35)


class AkamaiSignature(VendorSignature):
    name = "Akamai"

    def inspect(self, probe, evidence):
        if "akamaighost" in probe.header("server").lower():
            evidence.add("server", 0.4)
        if probe.header("x-akamai-session-info"):
            evidence.add("session-info", 0.35)
        if "ak_bmsc" in probe.cookies():
            evidence.add("cookie", 0.3)
        if "akamai" in probe.body.lower():
            evidence.add("body", 0.25)


class ImpervaSignature(VendorSignature):
    name = "Imperva Incapsula"

    def inspect(self, probe, evidence):
        if "incapsula" in probe.header("x-cdn").lower():
            evidence.add("x-cdn", 0.4)
        if probe.header("x-iinfo"):
            evidence.add("x-iinfo", 0.35)
        if _has(probe.cookies(), "incap_ses_", "visid_incap_"):
            evidence.add("cookie", 0.4)
        if _has(probe.body.lower(), "incapsula", "imperva"):
            evidence.add("body", 0.25)


class F5BigIPSignature(VendorSignature):
    name = "F5 BIG-IP"

    def inspect(self, probe, evidence):
        server = probe.header("server").lower()
        cookies = probe.cookies()

        if _has(server, "bigip", "f5"):
            evidence.add("server", 0.4)
        if any(key.lower().startswith(("x-wa-info", "x-cnection")) for key in probe.headers.keys()):
            evidence.add("asm-headers", 0.3)
        if "BIGipServer" in cookies:
            evidence.add("pool-cookie", 0.35)
        if "TS" in cookies and probe.status_code == 403:
            evidence.add("ts-cookie-on-block", 0.3)


class FortiWebSignature(VendorSignature):
    name = "FortiWeb"

    def inspect(self, probe, evidence):
        if _has(probe.body.lower(), "fortiweb", "fortigate"):
            evidence.add("body", 0.4)
        if "FORTIWAFSID" in probe.cookies():
            evidence.add("cookie", 0.45)


class BarracudaSignature(VendorSignature):
    name = "Barracuda WAF"

    def inspect(self, probe, evidence):
        if "barracuda" in probe.body.lower():
            evidence.add("body", 0.4)
        if "barra_counter_session" in probe.cookies():
            evidence.add("cookie", 0.45)


class CitrixNetScalerSignature(VendorSignature):
    name = "Citrix NetScaler"

    def inspect(self, probe, evidence):
        if _has(probe.cookies(), "ns_af", "citrix_ns_id"):
            evidence.add("cookie", 0.4)
        if "NS-CACHE" in probe.header("via"):
            evidence.add("via", 0.35)
        if "netscaler" in probe.body.lower():
            evidence.add("body", 0.25)


class CloudFrontSignature(VendorSignature):
    name = "Amazon CloudFront"

    def inspect(self, probe, evidence):
        if "cloudfront" in probe.header("server").lower():
            evidence.add("server", 0.35)
        if probe.header("x-cache") and "CloudFront" in probe.header("via"):
            evidence.add("cache-via", 0.35)
        if probe.header("x-amz-cf-id"):
            evidence.add("cf-id", 0.3)


class ModSecuritySignature(VendorSignature):
    name = "ModSecurity"

    def inspect(self, probe, evidence):
        server = probe.header("server").lower()
        body = probe.body.lower()

        if _has(server, "mod_security", "modsecurity"):
            evidence.add("server", 0.4)
        if probe.status_code in (403, 406, 501):
            if _has(body, "mod_security", "modsecurity") or (probe.status_code == 406 and "not acceptable" in body):
                evidence.add("block-page", 0.35)
        # Common ModSecurity error patterns
        if _has(body, "reference id", "your access has been blocked"):
            evidence.add("error-pattern", 0.25)


class SucuriSignature(VendorSignature):
    name = "Sucuri CloudProxy WAF"

    def inspect(self, probe, evidence):
        if "sucuri" in probe.header("server").lower():
            evidence.add("server", 0.4)
        if probe.header("x-sucuri-id") or probe.header("x-sucuri-cache"):
            evidence.add("sucuri-headers", 0.35)
        if _has(probe.body.lower(), "sucuri", "cloudproxy"):
            evidence.add("body", 0.3)
        if "sucuri" in probe.cookies():
            evidence.add("cookie", 0.25)


class WordfenceSignature(VendorSignature):
    name = "Wordfence"

    def inspect(self, probe, evidence):
        body = probe.body.lower()
        if _has(body, "wordfence", "a potentially unsafe operation has been detected"):
            evidence.add("body", 0.4)
        if probe.status_code == 503 and "this site is currently unavailable" in body:
            evidence.add("unavailable-page", 0.25)
        if "wfvt_" in probe.cookies():
            evidence.add("cookie", 0.35)


class StackPathSignature(VendorSignature):
    name = "StackPath WAF"

    def inspect(self, probe, evidence):
        if "stackpath" in probe.header("server").lower():
            evidence.add("server", 0.4)
        if probe.header("x-sp-shield") or probe.header("x-stackpath-shield"):
            evidence.add("shield-header", 0.35)
        if "stackpath" in probe.body.lower():
            evidence.add("body", 0.25)


class ReblazeSignature(VendorSignature):
    name = "Reblaze"

    def inspect(self, probe, evidence):
        if probe.header("x-reblaze-request-id"):
            evidence.add("request-id", 0.45)
        if "reblaze" in probe.header("server").lower():
            evidence.add("server", 0.35)
        if "rbzid" in probe.cookies():
            evidence.add("cookie", 0.35)
        if _has(probe.body.lower(), "reblaze", "rbzid"):
            evidence.add("body", 0.3)


class AzureWAFSignature(VendorSignature):
    name = "Azure WAF"

    def inspect(self, probe, evidence):
        if probe.header("x-azure-ref") or probe.header("x-azure-socketip"):
            evidence.add("azure-ref", 0.35)
        if "azure" in probe.header("server").lower():
            evidence.add("server", 0.25)
        if probe.status_code == 403 and "azure" in probe.body.lower():
            evidence.add("block-page", 0.3)


class FastlySignature(VendorSignature):
    name = "Fastly WAF"

    def inspect(self, probe, evidence):
        if probe.header("x-fastly-request-id") or probe.header("fastly-debug-digest"):
            evidence.add("request-id", 0.35)
        if "fastly" in probe.header("via").lower():
            evidence.add("via", 0.3)
        if "fastly" in probe.header("server").lower():
            evidence.add("server", 0.25)


class EdgeCastSignature(VendorSignature):
    name = "EdgeCast WAF"

    def inspect(self, probe, evidence):
        if _has(probe.header("server").lower(), "edgecast", "ecd"):
            evidence.add("server", 0.4)
        if probe.header("x-ec-debug"):
            evidence.add("debug-header", 0.35)
        if _has(probe.body.lower(), "reference #18", "edgecast"):
            evidence.add("body", 0.25)


class WallarmSignature(VendorSignature):
    name = "Wallarm"

    def inspect(self, probe, evidence):
        body = probe.body.lower()
        if "wallarm" in probe.header("server").lower():
            evidence.add("server", 0.4)
        if "wallarm" in probe.header("via").lower():
            evidence.add("via", 0.35)
        if "wallarm" in body:
            evidence.add("body", 0.3)
        if probe.status_code == 403 and "request blocked" in body:
            evidence.add("block-page", 0.2)


class SiteGroundSignature(VendorSignature):
    name = "SiteGround WAF"

    def inspect(self, probe, evidence):
        body = probe.body.lower()
        if "siteground" in body:
            evidence.add("body", 0.35)
        if probe.status_code == 403 and "request was blocked by our security" in body:
            evidence.add("block-page", 0.4)
        if "siteground" in probe.header("server").lower():
            evidence.add("server", 0.25)


class PentaSecuritySignature(VendorSignature):
    name = "Penta Security WAPPLES"

    def inspect(self, probe, evidence):
        body = probe.body.lower()
        if "wapples" in probe.header("server").lower():
            evidence.add("server", 0.45)
        if _has(body, "wapples", "penta security"):
            evidence.add("body", 0.35)
        if probe.status_code == 403 and "request blocked" in body:
            evidence.add("block-page", 0.2)


# Registration order decides ties in SignatureRegistry.identify: the first
# signature to reach the top score wins.
BUILTIN_SIGNATURE_CLASSES = [
    CloudflareSignature,
    AWSWAFSignature,
    AkamaiSignature,
    ImpervaSignature,
    F5BigIPSignature,
    FortiWebSignature,
    BarracudaSignature,
    CitrixNetScalerSignature,
    CloudFrontSignature,
    ModSecuritySignature,
    SucuriSignature,
    WordfenceSignature,
    StackPathSignature,
    ReblazeSignature,
    AzureWAFSignature,
    FastlySignature,
    EdgeCastSignature,
    WallarmSignature,
    SiteGroundSignature,
    PentaSecuritySignature,
]


def builtin_signatures(min_indicators: int = 2, discount: float = 0.5) -> List[Signature]:
    """Fresh instances of every built-in signature, in registration order."""
    return [cls(min_indicators=min_indicators, discount=discount) for cls in BUILTIN_SIGNATURE_CLASSES]
