#!/usr/bin/env python3
"""Shared pytest fixtures: on-disk Rails application trees and in-memory registries."""

import sys
from pathlib import Path

import pytest

# Ensure scripts/ is importable when pytest runs without the pyproject settings
SCRIPTS_DIR = Path(__file__).resolve().parent.parent / "scripts"
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from component_registry import ComponentRecord, ComponentRegistry  # noqa: E402
from pattern_extractor import ComponentKind  # noqa: E402


RAILS_APP_FILES = {
    "app/models/user.rb": """class User < ApplicationRecord
  has_many :posts
  belongs_to :firm
end
""",
    "app/models/post.rb": """class Post < ApplicationRecord
  belongs_to :user
end
""",
    "app/models/firm.rb": """class Firm < ApplicationRecord
  has_many :users
end
""",
    "app/controllers/users_controller.rb": """class UsersController < ApplicationController
  def index
    @users = User.where(active: true)
  end

  def show
    @user = User.find(params[:id])
  end

  private

  def user_params
    params.require(:user).permit(:name)
  end
end
""",
    "app/services/user_sync_service.rb": """class UserSyncService
  def call(id)
    user = User.find(id)
    NotificationService.call(user)
  end
end
""",
    "app/services/notification_service.rb": """class NotificationService
  def self.call(user)
    Message.new(user: user).deliver
  end
end
""",
    "app/workers/sync_worker.rb": """class SyncWorker
  def perform(id)
    UserSyncService.call(id)
  end
end
""",
}


def write_tree(root: Path, files: dict) -> Path:
    for rel_path, text in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def make_app(tmp_path):
    """Factory writing a dict of relative path -> text under tmp_path."""
    def _make(files: dict) -> Path:
        return write_tree(tmp_path, files)
    return _make


@pytest.fixture
def rails_app(make_app):
    """A small Rails tree with three models, a controller, two services and a worker."""
    return make_app(RAILS_APP_FILES)


def record(kind, name, dependencies=(), associations=None, actions=()):
    return ComponentRecord(
        name=name,
        kind=kind,
        source_path=f"app/{kind.directory}/{name.lower()}.rb",
        dependencies=tuple(dependencies),
        associations=dict(associations or {}),
        actions=tuple(actions)
    )


@pytest.fixture
def build_registry():
    """Factory registering (kind, name, dependencies) tuples in order."""
    def _build(*entries) -> ComponentRegistry:
        registry = ComponentRegistry()
        for entry in entries:
            registry.register(record(*entry))
        return registry
    return _build

