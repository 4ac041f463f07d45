"""Kanban tools exposed over MCP: schemas, argument checks and handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from application.ports import TaskRepository
from core import ValidationError

_JSON_TYPES: Dict[str, Tuple[type, ...]] = {
    "string": (str,),
    "array": (list,),
    "boolean": (bool,),
    "object": (dict,),
}


@dataclass(frozen=True)
class ToolParam:
    name: str
    type: str
    description: str
    required: bool = False
    items: Optional[str] = None

    def schema(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.items:
            out["items"] = {"type": self.items}
        return out


Handler = Callable[[TaskRepository, Dict[str, Any]], Any]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params: Tuple[ToolParam, ...]
    handler: Handler

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {p.name: p.schema() for p in self.params},
            "required": [p.name for p in self.params if p.required],
        }

    def descriptor(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}

    def validate(self, arguments: Dict[str, Any]) -> None:
        """Raise ValidationError unless every required parameter is present and typed right."""
        missing = [p.name for p in self.params if p.required and arguments.get(p.name) is None]
        if missing:
            raise ValidationError(f"Missing required parameter(s) for {self.name}: {', '.join(missing)}")
        for param in self.params:
            value = arguments.get(param.name)
            if value is None:
                continue
            if not isinstance(value, _JSON_TYPES.get(param.type, (object,))):
                raise ValidationError(f"Parameter {param.name} of {self.name} must be of type {param.type}")
            if param.items and not all(isinstance(item, _JSON_TYPES[param.items]) for item in value):
                raise ValidationError(f"Parameter {param.name} of {self.name} must contain only {param.items} items")

    def __call__(self, repository: TaskRepository, arguments: Dict[str, Any]) -> Any:
        self.validate(arguments)
        return self.handler(repository, arguments)


def _p(name: str, description: str, *, required: bool = False, type: str = "string", items: Optional[str] = None) -> ToolParam:
    return ToolParam(name=name, type=type, description=description, required=required, items=items)


_LANE_HINT = _p("lane", "Current lane of the task (speeds up lookup)")


# ---------------------------------------------------------------------- handlers


def _list_lanes(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    lanes = repo.list_lanes()
    return {"lanes": lanes, "total": len(lanes)}


def _list_all_tasks(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    tasks = [task.to_dict() for task in repo.list_all_tasks()]
    return {"tasks": tasks, "total": len(tasks)}


def _get_lane_tasks(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    tasks = [task.to_dict() for task in repo.list_lane_tasks(args["lane"])]
    return {"lane": args["lane"], "tasks": tasks, "total": len(tasks)}


def _with_tags(content: str, tags: List[str]) -> str:
    if not tags:
        return content
    tag_line = " ".join(f"#{tag.lstrip('#')}" for tag in tags)
    return f"{content}\n\n{tag_line}" if content else tag_line


def _add_task(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    content = _with_tags(args.get("content") or "", list(args.get("tags") or []))
    task = repo.create_task(args["lane"], args["title"], content)
    return {"success": True, "task": task.to_dict()}


def _get_task(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    return repo.get_task(args["task_id"], args.get("lane")).to_dict()


def _update_task(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    task = repo.update_task(
        args["task_id"],
        content=args.get("content"),
        lane=args.get("lane") or args.get("current_lane"),
        new_lane=args.get("new_lane"),
    )
    return {"success": True, "task": task.to_dict()}


def _rename_task(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    task = repo.update_task_title(args["task_id"], args["title"], args["lane"])
    return {"success": True, "task": task.to_dict()}


def _move_task(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    task = repo.move_task(args["task_id"], args["from_lane"], args["to_lane"])
    return {"success": True, "task": task.to_dict()}


def _delete_task(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "deletedTask": repo.delete_task(args["task_id"], args.get("lane"))}


def _create_lane(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "lane": repo.create_lane(args.get("name")).to_dict()}


def _rename_lane(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "lane": repo.rename_lane(args["lane"], args["new_name"]).to_dict()}


def _delete_lane(repo: TaskRepository, args: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "deletedLane": repo.delete_lane(args["lane"])}


_ADD_TASK_PARAMS = (
    _p("title", "Title of the new task", required=True),
    _p("lane", "Lane to add the task to (created if missing)", required=True),
    _p("content", "Optional markdown content for the task"),
    _p("tags", "Optional tags, appended to the content as #tag", type="array", items="string"),
)

_TOOLS: Tuple[Tool, ...] = (
    Tool("list_lanes", "Get all available lanes (columns) in the kanban board", (), _list_lanes),
    Tool("list_all_tasks", "Get all tasks from all lanes in the kanban board", (), _list_all_tasks),
    Tool(
        "get_lane_tasks",
        "Get all tasks from a specific lane",
        (_p("lane", "Name of the lane to get tasks from", required=True),),
        _get_lane_tasks,
    ),
    Tool("add_task", "Add a new task to a kanban board lane", _ADD_TASK_PARAMS, _add_task),
    Tool("create_task", "Create a new task in a lane (alias of add_task)", _ADD_TASK_PARAMS, _add_task),
    Tool(
        "get_task",
        "Get the content, title, lane and tags of a specific task",
        (_p("task_id", "ID of the task to retrieve", required=True), _LANE_HINT),
        _get_task,
    ),
    Tool(
        "update_task",
        "Replace a task's content and/or move it to another lane",
        (
            _p("task_id", "ID of the task to update", required=True),
            _p("content", "New markdown content for the task"),
            _p("new_lane", "Lane to move the task to"),
            _LANE_HINT,
            _p("current_lane", "Alias of lane"),
        ),
        _update_task,
    ),
    Tool(
        "rename_task",
        "Change a task's title (its filename); content is untouched",
        (
            _p("task_id", "ID of the task to rename", required=True),
            _p("title", "New title", required=True),
            _p("lane", "Lane the task is in", required=True),
        ),
        _rename_task,
    ),
    Tool(
        "move_task",
        "Move a task from one lane to another",
        (
            _p("task_id", "ID of the task to move", required=True),
            _p("from_lane", "Lane the task is currently in", required=True),
            _p("to_lane", "Destination lane (created if missing)", required=True),
        ),
        _move_task,
    ),
    Tool(
        "delete_task",
        "Delete a task from the board",
        (_p("task_id", "ID of the task to delete", required=True), _LANE_HINT),
        _delete_task,
    ),
    Tool(
        "create_lane",
        "Create a new lane",
        (_p("name", "Name of the new lane (random id when omitted)"),),
        _create_lane,
    ),
    Tool(
        "rename_lane",
        "Rename a lane; its tasks keep their ids",
        (
            _p("lane", "Current lane name", required=True),
            _p("new_name", "New lane name", required=True),
        ),
        _rename_lane,
    ),
    Tool(
        "delete_lane",
        "Delete a lane together with every task in it (irreversible)",
        (_p("lane", "Lane to delete", required=True),),
        _delete_lane,
    ),
)


def build_tool_registry() -> Dict[str, Tool]:
    return {tool.name: tool for tool in _TOOLS}


def get_tool_definitions() -> List[Dict[str, Any]]:
    """MCP tool descriptors in registration order."""
    return [tool.descriptor() for tool in _TOOLS]


__all__ = ["Tool", "ToolParam", "build_tool_registry", "get_tool_definitions"]
