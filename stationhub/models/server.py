"""
Pydantic model describing a game server as reported by the server list.
"""

from pydantic import BaseModel

from stationhub.system.environment import CurrentEnvironment


class ServerDescriptor(BaseModel):
    """The parts of a server listing needed to install and join its build."""

    server_name: str = ""
    fork_name: str
    build_version: int
    win_download: str | None = None
    osx_download: str | None = None
    linux_download: str | None = None
    server_ip: str | None = None
    server_port: int | None = None

    class Config:
        """Pydantic model configuration."""

        str_strip_whitespace = True

    def get_download_url(self, environment: CurrentEnvironment) -> str | None:
        """Picks the build archive URL matching the platform, if the server has one."""
        if environment is CurrentEnvironment.WINDOWS_STANDALONE:
            return self.win_download
        if environment is CurrentEnvironment.MACOS_STANDALONE:
            return self.osx_download
        if environment.is_linux:
            return self.linux_download
        return None
