from sqlmodel import SQLModel, create_engine


def make_engine(db_url: str):
    return create_engine(db_url, echo=False)


def init_db(engine) -> None:
    # table definitions must be imported before create_all
    import bookpub.crud.models  # noqa: F401
    SQLModel.metadata.create_all(engine)
