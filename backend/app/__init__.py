"""Application settings, constants, schemas, errors and the FastAPI app."""
