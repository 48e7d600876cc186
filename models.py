import json
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

from schemas import TestCase

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class Snippet(db.Model):
    """A saved workspace: one script and the test cases written for it."""

    id = db.Column(db.Integer, primary_key=True)
    filename = db.Column(db.String(255), nullable=False, default='script.py')
    code = db.Column(db.Text, nullable=False, default='')
    test_cases_json = db.Column(db.Text, nullable=False, default='[]') # list of TestCase dicts
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def test_cases(self):
        return [TestCase.model_validate(tc) for tc in json.loads(self.test_cases_json or '[]')]

    @test_cases.setter
    def test_cases(self, test_cases):
        self.test_cases_json = json.dumps([tc.model_dump(by_alias=True) for tc in test_cases], ensure_ascii=False)

    def to_dict(self):
        return {
            'id': self.id,
            'filename': self.filename,
            'code': self.code,
            'testCases': [tc.model_dump(by_alias=True) for tc in self.test_cases],
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<Snippet {self.filename}>'
