from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Table shape used by deployments that predate two-tier storage. Kept on its
# own metadata so it never collides with Base when tables are created.
LegacyBase = declarative_base()
