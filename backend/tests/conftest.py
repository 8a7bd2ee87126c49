"""
Pytest fixtures for FireLynx backend tests.

Provides the application on an in-memory database, a test client, a
per-test table wipe, and the project / user / file rows documents point at.
"""

import pytest

from firelynx import create_app
from firelynx.extensions import db
from firelynx.models import FileAsset, Project, User


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'AUTO_INVOICE_APPROVED_VARIATIONS': False,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['AUTO_INVOICE_APPROVED_VARIATIONS'] = False


@pytest.fixture(scope='function')
def project(db_session):
    """Project every document in a test is raised against."""
    project = Project(title="Palm Villa Fit-out", client_name="Al Noor Family")
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture(scope='function')
def other_project(db_session):
    """A second, unrelated project."""
    project = Project(title="Marina Office", client_name="Blue Harbor LLC")
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture(scope='function')
def client_user(db_session):
    """Client contact who raises tickets."""
    user = User(name="Layla Client", email="layla@client.test", role="client")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff_user(db_session):
    """Studio manager who records dispositions and works tickets."""
    user = User(name="Omar Manager", email="omar@studio.test", role="manager")
    db_session.add(user)
    db_session.commit()
    return user


def make_file(db_session, project, name):
    asset = FileAsset(
        project_id=project.id,
        filename=f"{name}.pdf",
        original_name=f"{name}.pdf",
        url=f"/uploads/{name}.pdf",
        content_type="application/pdf",
        size=1024,
    )
    db_session.add(asset)
    db_session.commit()
    return asset


@pytest.fixture(scope='function')
def project_files(db_session, project):
    """Two drawings uploaded to the project."""
    return [
        make_file(db_session, project, "floor-plan"),
        make_file(db_session, project, "kitchen-elevation"),
    ]


@pytest.fixture(scope='function')
def foreign_file(db_session, other_project):
    """A file that belongs to another project."""
    return make_file(db_session, other_project, "office-layout")
