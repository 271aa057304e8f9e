from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from playlist_sorter.core import SortDirection, SortKey


class KeyConfig(BaseModel):
    """
    Keyboard slots of the sorter layout.

    Which slots are live depends on how many playlists are selected (see
    sorting.keybindings.build_key_map); `skip` is always live.
    """

    left_top: str = "Q"
    left_bottom: str = "A"
    right_top: str = "E"
    right_bottom: str = "D"
    bottom: str = "S"
    skip: str = "W"


class FilterSettings(BaseModel):
    min_date: Optional[date] = None
    max_date: Optional[date] = None
    min_popularity: int = Field(default=0, ge=0, le=100)
    max_popularity: int = Field(default=100, ge=0, le=100)
    min_playlists: int = Field(default=0, ge=0)
    max_playlists: Optional[int] = Field(default=None, ge=0)
    genres: List[str] = Field(default_factory=list)


class SorterSettings(BaseModel):
    prevent_duplicates: bool = True
    exclude_all_playlists: bool = False
    sort_key: SortKey = SortKey.SAVED_AT
    sort_dir: SortDirection = SortDirection.DESC
    key_config: KeyConfig = Field(default_factory=KeyConfig)
    filters: FilterSettings = Field(default_factory=FilterSettings)
