"""
Exceptions raised by the smart QR pipeline
"""


class SmartQRError(Exception):
    """Base error for the smart QR pipeline"""


class SigningError(SmartQRError):
    """Payload could not be signed"""


class EnrichmentError(SmartQRError):
    """Remote enrichment call failed or returned garbage"""


class BuildCancelled(SmartQRError):
    """The build was superseded or the generator was closed"""


class QRRenderError(SmartQRError):
    """The QR bitmap could not be encoded"""


class LogoLoadError(SmartQRError):
    """Logo image could not be fetched or decoded"""


class InvalidContentError(SmartQRError):
    """Envelope failed shape validation"""
