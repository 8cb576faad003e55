from enum import Enum


class UserRole(str, Enum):
    MANUFACTURER = "MANUFACTURER"
    DISTRIBUTOR = "DISTRIBUTOR"
    PHARMACY = "PHARMACY"
    PATIENT = "PATIENT"


# Demo identities used when no wallet address is supplied at login
ROLE_ADDRESSES = {
    UserRole.MANUFACTURER: "0xManufacturer123456789",
    UserRole.DISTRIBUTOR: "0xDistributor123456789",
    UserRole.PHARMACY: "0xPharmacy123456789",
    UserRole.PATIENT: "0xPatient123456789",
}

STORAGE_PREFIX = "pharmachain_"

STORAGE_KEYS = {
    "LEDGER": "ledger",
    "CURRENT_USER": "current_user",
}

# Celsius, cold chain range
TEMPERATURE_THRESHOLDS = {
    "MIN": 2,
    "MAX": 8,
}

DEFAULT_TEMPERATURE = 4
DEFAULT_LOCATION = "Manufacturing Facility"

# Simulated mining time, milliseconds
DEFAULT_MIN_DELAY_MS = 1500
DEFAULT_MAX_DELAY_MS = 3000
DEFAULT_READ_MIN_DELAY_MS = 200
DEFAULT_READ_MAX_DELAY_MS = 500
