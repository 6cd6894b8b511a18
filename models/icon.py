"""Icons that can decorate projects and tasks."""
from database import db


class Icon(db.Model):
    __tablename__ = "icon"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    url = db.Column(db.String(255), nullable=True)

    def __repr__(self):
        return f"<Icon {self.name}>"
