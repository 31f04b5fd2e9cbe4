"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import MagicMock, Mock

from odata_inspector.metadata.parser import SchemaParser


SERVICE_ROOT = "https://test.example.com/odata/Shop.svc/"


V2_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
  <edmx:DataServices m:DataServiceVersion="2.0" xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">
    <Schema Namespace="Shop" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">
      <EntityType Name="Order">
        <Key>
          <PropertyRef Name="OrderID"/>
        </Key>
        <Property Name="OrderID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Customer" Type="Edm.String" MaxLength="40" Unicode="false"/>
        <Property Name="Placed" Type="Edm.DateTime"/>
        <NavigationProperty Name="Items" Relationship="Shop.Order_Items" FromRole="Order" ToRole="Items"/>
        <NavigationProperty Name="Ghost" Relationship="Shop.Missing_Assoc" FromRole="Order" ToRole="Ghost"/>
        <NavigationProperty Name="Lonely" Relationship="Shop.Half_Assoc" FromRole="Order" ToRole="Other"/>
      </EntityType>
      <EntityType Name="OrderItem">
        <Key>
          <PropertyRef Name="OrderItemID"/>
        </Key>
        <Property Name="OrderItemID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="OrderID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Product" Type="Edm.String" MaxLength="Max"/>
        <NavigationProperty Name="Order" Relationship="Shop.Order_Items" FromRole="Items" ToRole="Order"/>
      </EntityType>
      <EntityType Name="Employee">
        <Key>
          <PropertyRef Name="EmployeeID"/>
        </Key>
        <Property Name="EmployeeID" Type="Edm.Guid" Nullable="false"/>
        <Property Name="ManagerID" Type="Edm.Guid"/>
        <NavigationProperty Name="Manager" Relationship="Employee_Manager" FromRole="Employee" ToRole="Manager"/>
        <NavigationProperty Name="Reports" Relationship="Employee_Manager" FromRole="Manager" ToRole="Employee"/>
      </EntityType>
      <EntityType Name="Pair">
        <Key>
          <PropertyRef Name="A"/>
          <PropertyRef Name="B"/>
        </Key>
        <Property Name="A" Type="Edm.Int32" Nullable="false"/>
        <Property Name="B" Type="Edm.String" Nullable="false"/>
      </EntityType>
      <Association Name="Order_Items">
        <End Role="Order" Type="Shop.Order" Multiplicity="1"/>
        <End Role="Items" Type="Shop.OrderItem" Multiplicity="*"/>
        <ReferentialConstraint>
          <Principal Role="Order">
            <PropertyRef Name="OrderID"/>
          </Principal>
          <Dependent Role="Items">
            <PropertyRef Name="OrderID"/>
          </Dependent>
        </ReferentialConstraint>
      </Association>
      <Association Name="Employee_Manager">
        <End Role="Employee" Type="Shop.Employee" Multiplicity="*"/>
        <End Role="Manager" Type="Shop.Employee" Multiplicity="0..1"/>
        <ReferentialConstraint>
          <Principal Role="Manager">
            <PropertyRef Name="EmployeeID"/>
          </Principal>
          <Dependent Role="Employee">
            <PropertyRef Name="ManagerID"/>
          </Dependent>
        </ReferentialConstraint>
      </Association>
      <Association Name="Half_Assoc">
        <End Role="Order" Type="Shop.Order" Multiplicity="1"/>
      </Association>
      <EntityContainer Name="ShopEntities" m:IsDefaultEntityContainer="true">
        <EntitySet Name="Orders" EntityType="Shop.Order"/>
        <EntitySet Name="OrderItems" EntityType="Shop.OrderItem"/>
        <EntitySet Name="Employees" EntityType="Shop.Employee"/>
        <EntitySet Name="Pairs" EntityType="Shop.Pair"/>
        <AssociationSet Name="Order_Items_Set" Association="Shop.Order_Items">
          <End Role="Order" EntitySet="Orders"/>
          <End Role="Items" EntitySet="OrderItems"/>
        </AssociationSet>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>"""


V4_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
  <edmx:DataServices>
    <Schema Namespace="Shop" xmlns="http://docs.oasis-open.org/odata/ns/edm">
      <EntityType Name="Order">
        <Key>
          <PropertyRef Name="OrderID"/>
        </Key>
        <Property Name="OrderID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Customer" Type="Edm.String" MaxLength="40"/>
        <NavigationProperty Name="Items" Type="Collection(Shop.OrderItem)" Partner="Order"/>
      </EntityType>
      <EntityType Name="OrderItem">
        <Key>
          <PropertyRef Name="OrderItemID"/>
        </Key>
        <Property Name="OrderItemID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="OrderID" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Product" Type="Edm.String"/>
        <NavigationProperty Name="Order" Type="Shop.Order" Nullable="false" Partner="Items">
          <ReferentialConstraint Property="OrderID" ReferencedProperty="OrderID"/>
        </NavigationProperty>
      </EntityType>
      <EntityContainer Name="Container">
        <EntitySet Name="Orders" EntityType="Shop.Order">
          <NavigationPropertyBinding Path="Items" Target="OrderItems"/>
        </EntitySet>
        <EntitySet Name="OrderItems" EntityType="Shop.OrderItem"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>"""


@pytest.fixture
def v2_metadata_xml():
    """OData V2 $metadata with associations, a self-reference and broken links."""
    return V2_METADATA


@pytest.fixture
def v4_metadata_xml():
    """OData V4 $metadata describing the same Order/OrderItem model."""
    return V4_METADATA


@pytest.fixture
def v2_schema(v2_metadata_xml):
    return SchemaParser().parse(v2_metadata_xml)


@pytest.fixture
def v4_schema(v4_metadata_xml):
    return SchemaParser().parse(v4_metadata_xml)


@pytest.fixture
def mock_session():
    """Create a mock ODataSession."""
    session = Mock()
    session.cfg = Mock()
    session.cfg.version = "V2"
    session.base = SERVICE_ROOT
    session.timeout = 60.0
    session.verify = True
    session.session = MagicMock()
    return session


@pytest.fixture
def sample_odata_response():
    """Sample OData V2 verbose response."""
    return {
        "d": {
            "results": [
                {"OrderID": 1, "Customer": "ALFKI"},
                {"OrderID": 2, "Customer": "ANATR"},
            ],
            "__next": None,
        }
    }


@pytest.fixture
def order_tree():
    """Orders with expanded Items; selection marks on both levels."""
    return [
        {
            "OrderID": 1,
            "Customer": "ALFKI",
            "__selected": True,
            "Items": {
                "results": [
                    {"OrderItemID": 10, "OrderID": 1, "Product": "Chai", "__selected": True},
                    {"OrderItemID": 11, "OrderID": 1, "Product": "Chang"},
                ]
            },
        },
        {
            "OrderID": 2,
            "Customer": "ANATR",
            "Items": {
                "results": [
                    {"OrderItemID": 20, "OrderID": 2, "Product": "Tofu", "__selected": True},
                ]
            },
        },
    ]
