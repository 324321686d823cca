# facility_compliance/db/base.py
from sqlalchemy.orm import declarative_base

# Single declarative Base so metadata is unified across all models
Base = declarative_base()
