from typing import Any, Dict, List, Optional, Protocol

from core import Lane, Task


class TaskRepository(Protocol):
    def create_task(self, lane: str, title: str, content: str = "") -> Task:
        ...

    def get_task(self, task_id: str, lane: Optional[str] = None) -> Task:
        ...

    def update_task(
        self,
        task_id: str,
        content: Optional[str] = None,
        lane: Optional[str] = None,
        new_lane: Optional[str] = None,
    ) -> Task:
        ...

    def update_task_title(self, task_id: str, new_title: str, lane: str) -> Task:
        ...

    def delete_task(self, task_id: str, lane: Optional[str] = None) -> Dict[str, Any]:
        ...

    def move_task(self, task_id: str, from_lane: str, to_lane: str) -> Task:
        ...

    def create_lane(self, name: Optional[str] = None) -> Lane:
        ...

    def delete_lane(self, name: str) -> Dict[str, Any]:
        ...

    def rename_lane(self, old_name: str, new_name: str) -> Lane:
        ...

    def list_lanes(self) -> List[str]:
        ...

    def list_lane_tasks(self, lane: str) -> List[Task]:
        ...

    def list_all_tasks(self) -> List[Task]:
        ...

    def reconcile(self) -> Dict[str, Any]:
        ...
