"""A task represent an objective that needs to be completed

A Task belongs to a Project (project_id); this is the relation behind Project.task_count
A Task can additionally reference the sub-project it was filed under (sub_parent_id)
A Task can only be attached directly to a leafy Project
A User is the owner of the Tasks they create

"""
from __future__ import annotations
from datetime import datetime

from database import db


class Task(db.Model):
    __tablename__ = "task"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)
    sub_parent_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True)
    icon_id = db.Column(db.Integer, db.ForeignKey("icon.id"), nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    project = db.relationship(
        "Project", back_populates="tasks", foreign_keys=[project_id]
    )
    sub_parent = db.relationship("Project", foreign_keys=[sub_parent_id])
    icon = db.relationship("Icon")
    owner = db.relationship("User", back_populates="owned_tasks", foreign_keys=[owner_id])

    def __repr__(self):
        return f"<Task {self.name}>"
