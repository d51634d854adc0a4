from sqlalchemy import BigInteger, Integer

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

# Caller-chosen round identifiers and provider request handles are opaque
# strings; 100 characters fits a decimal uint256 with room for prefixes.
OPAQUE_ID_LENGTH = 100
