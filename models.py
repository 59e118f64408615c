"""
SQLAlchemy ORM Models for the network inventory
Existing allocations only - granted ranges are never stored
"""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Network(Base):
    """VPC network - groups every range that shares one address space"""

    __tablename__ = "networks"

    name = Column(String(100), primary_key=True)
    project = Column(String(100), nullable=False)

    # Relationships
    subnetworks = relationship(
        "Subnetwork", back_populates="network", cascade="all, delete-orphan"
    )
    addresses = relationship(
        "ReservedAddress", back_populates="network", cascade="all, delete-orphan"
    )
    clusters = relationship(
        "Cluster", back_populates="network", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Network {self.project}/{self.name}>"


class Subnetwork(Base):
    """Regional subnetwork with its primary range"""

    __tablename__ = "subnetworks"
    __table_args__ = (
        UniqueConstraint("network_name", "name", name="uq_subnetwork_network_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    region = Column(String(50), nullable=False)
    ip_cidr_range = Column(String(18), nullable=False)

    # Foreign keys
    network_name = Column(String(100), ForeignKey("networks.name"), nullable=False)

    # Relationships
    network = relationship("Network", back_populates="subnetworks")
    secondary_ranges = relationship(
        "SecondaryRange", back_populates="subnetwork", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Subnetwork {self.name}: {self.ip_cidr_range}>"


class SecondaryRange(Base):
    """Alias range of a subnetwork (e.g. pods/services)"""

    __tablename__ = "secondary_ranges"
    __table_args__ = (
        UniqueConstraint(
            "subnetwork_id", "range_name", name="uq_secondary_subnetwork_range_name"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    range_name = Column(String(100), nullable=False)
    ip_cidr_range = Column(String(18), nullable=False)

    # Foreign keys
    subnetwork_id = Column(Integer, ForeignKey("subnetworks.id"), nullable=False)

    # Relationships
    subnetwork = relationship("Subnetwork", back_populates="secondary_ranges")

    def __repr__(self):
        return f"<SecondaryRange {self.range_name}: {self.ip_cidr_range}>"


class ReservedAddress(Base):
    """Reserved regional address; a bare IP or a CIDR"""

    __tablename__ = "reserved_addresses"
    __table_args__ = (
        UniqueConstraint("network_name", "name", name="uq_address_network_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    region = Column(String(50), nullable=False)
    address = Column(String(18), nullable=False)

    # Foreign keys
    network_name = Column(String(100), ForeignKey("networks.name"), nullable=False)

    # Relationships
    network = relationship("Network", back_populates="addresses")

    def __repr__(self):
        return f"<ReservedAddress {self.name}: {self.address}>"


class Cluster(Base):
    """Managed cluster; only its control-plane range takes space"""

    __tablename__ = "clusters"
    __table_args__ = (
        UniqueConstraint("network_name", "name", name="uq_cluster_network_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    location = Column(String(50), nullable=False)
    master_ipv4_cidr_block = Column(String(18), nullable=True)

    # Foreign keys
    network_name = Column(String(100), ForeignKey("networks.name"), nullable=False)

    # Relationships
    network = relationship("Network", back_populates="clusters")

    def __repr__(self):
        return f"<Cluster {self.name}: {self.master_ipv4_cidr_block}>"
