from flask_sqlalchemy import SQLAlchemy

# Shared database instance for ORM models

db = SQLAlchemy(session_options={"expire_on_commit": False})

# BIGINT that still autoincrements on SQLite
BigInt = db.BigInteger().with_variant(db.Integer, "sqlite")

__all__ = ["db", "BigInt"]
