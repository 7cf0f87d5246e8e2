"""
wafdetect
Web Application Firewall detection and fingerprinting

Sends a small battery of benign and attack-shaped HTTP probes to each target,
decides from the response deltas whether a WAF is filtering traffic and names
the vendor from known header, cookie and body fingerprints.
"""

__version__ = "1.0.0"
__description__ = "Web Application Firewall detection and fingerprinting"
